"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cbfeed.ingestion.coinbase.ws import COINBASE_WS_URL, SAMPLE_SUBSCRIPTION

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


class _Stderr:
    """Writes to whatever sys.stderr is at call time."""

    def write(self, message: str) -> int:
        return sys.stderr.write(message)

    def flush(self) -> None:
        sys.stderr.flush()


class ConfigError(ValueError):
    """Configuration is missing a required value or has an invalid one."""


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir() -> Path:
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    config_dir = config_dir or _find_config_dir()
    default_path = config_dir / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = config_dir / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class ListenerSettings(BaseModel):
    """Immutable settings handed to the listener core."""

    model_config = ConfigDict(frozen=True)

    service_address: str = Field(..., min_length=1)
    on_connect_message: str = Field(..., min_length=1)
    queue_size: int = Field(1000, ge=1)
    workers: int = Field(4, ge=1)
    overflow: str = Field("block", pattern="^(block|drop)$")
    drain_timeout_sec: float = Field(5.0, ge=0)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        feed: dict[str, Any] | None = None,
        dispatch: dict[str, Any] | None = None,
        parser: dict[str, Any] | None = None,
        storage: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.feed = feed or {}
        self.dispatch = dispatch or {}
        self.parser = parser or {}
        self.storage = storage or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            feed=raw.get("feed"),
            dispatch=raw.get("dispatch"),
            parser=raw.get("parser"),
            storage=raw.get("storage"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def service_address(self) -> str:
        return self.feed.get("service_address", COINBASE_WS_URL)

    @property
    def on_connect_msg(self) -> str:
        return self.feed.get("on_connect_msg", SAMPLE_SUBSCRIPTION)

    @property
    def queue_size(self) -> int:
        return int(self.dispatch.get("queue_size", 1000))

    @property
    def workers(self) -> int:
        return int(self.dispatch.get("workers", 4))

    @property
    def overflow(self) -> str:
        return str(self.dispatch.get("overflow", "block")).lower()

    @property
    def drain_timeout_sec(self) -> float:
        return float(self.dispatch.get("drain_timeout_sec", 5.0))

    @property
    def measurement(self) -> str:
        return self.parser.get("measurement", "coinbase_marketdata")

    @property
    def name_key(self) -> str:
        return self.parser.get("name_key", "type")

    @property
    def time_key(self) -> str:
        return self.parser.get("time_key", "time")

    @property
    def time_format(self) -> str:
        return self.parser.get("time_format", "iso8601")

    @property
    def tag_keys(self) -> list[str]:
        return list(self.parser.get("tag_keys") or ["type", "product_id", "side"])

    @property
    def string_fields(self) -> list[str]:
        return list(self.parser.get("string_fields") or [])

    @property
    def query(self) -> str:
        return self.parser.get("query", "")

    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/cbfeed.duckdb")

    @property
    def batch_size(self) -> int:
        return int(self.storage.get("batch_size", 100))

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)

    def listener_settings(self) -> ListenerSettings:
        """Validated, frozen settings for MarketDataListener. Raises ConfigError."""
        try:
            return ListenerSettings(
                service_address=self.service_address.strip(),
                on_connect_message=self.on_connect_msg,
                queue_size=self.queue_size,
                workers=self.workers,
                overflow=self.overflow,
                drain_timeout_sec=self.drain_timeout_sec,
            )
        except ValidationError as e:
            raise ConfigError(str(e)) from e


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_Stderr()),
        cache_logger_on_first_use=True,
    )
