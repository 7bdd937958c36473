from cbfeed.config.settings import ConfigError, ListenerSettings, Settings, get_settings

__all__ = ["ConfigError", "ListenerSettings", "Settings", "get_settings"]
