"""Config loading, profile overlay and listener settings validation."""

import io
import json
import sys

import pytest
import structlog
from pydantic import ValidationError

from cbfeed.config.settings import (
    ConfigError,
    ListenerSettings,
    Settings,
    configure_logging,
    get_settings,
    load_config,
)


def write(path, text):
    path.write_text(text, encoding="utf-8")


def test_profile_overlay_deep_merges(tmp_path):
    write(
        tmp_path / "default.toml",
        '[feed]\nservice_address = "wss://a"\non_connect_msg = "hi"\n[dispatch]\nworkers = 4\nqueue_size = 10\n',
    )
    write(tmp_path / "dev.toml", "[dispatch]\nworkers = 1\n")
    raw = load_config("dev", tmp_path)
    assert raw["dispatch"] == {"workers": 1, "queue_size": 10}
    s = get_settings("dev", tmp_path)
    assert s.workers == 1
    assert s.queue_size == 10
    assert s.service_address == "wss://a"


def test_missing_default_file_gives_defaults(tmp_path):
    assert load_config(None, tmp_path) == {}
    s = get_settings(None, tmp_path)
    assert s.service_address == "wss://ws-feed.pro.coinbase.com"
    assert '"subscribe"' in s.on_connect_msg
    assert s.tag_keys == ["type", "product_id", "side"]
    assert s.overflow == "block"


def test_listener_settings_from_config():
    ls = Settings.from_dict(
        {"feed": {"service_address": " wss://x ", "on_connect_msg": "{}"}, "dispatch": {"overflow": "DROP"}}
    ).listener_settings()
    assert ls.service_address == "wss://x"
    assert ls.on_connect_message == "{}"
    assert ls.overflow == "drop"


@pytest.mark.parametrize(
    "raw",
    [
        {"feed": {"service_address": ""}},
        {"feed": {"on_connect_msg": ""}},
        {"dispatch": {"overflow": "spill"}},
        {"dispatch": {"workers": 0}},
    ],
)
def test_invalid_listener_settings(raw):
    with pytest.raises(ConfigError):
        Settings.from_dict(raw).listener_settings()


def test_listener_settings_are_frozen():
    ls = ListenerSettings(service_address="wss://x", on_connect_message="{}")
    with pytest.raises(ValidationError):
        ls.service_address = "wss://y"


def test_logging_writes_to_current_stderr(monkeypatch):
    configure_logging(Settings(logging={"format": "json"}))
    first = io.StringIO()
    monkeypatch.setattr(sys, "stderr", first)
    structlog.get_logger("cbfeed.test").info("first_event")
    assert json.loads(first.getvalue())["event"] == "first_event"

    first.close()
    second = io.StringIO()
    monkeypatch.setattr(sys, "stderr", second)
    structlog.get_logger("cbfeed.test").warning("second_event", n=2)
    line = json.loads(second.getvalue())
    assert line["event"] == "second_event"
    assert line["level"] == "warning"
