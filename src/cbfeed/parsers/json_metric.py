"""JSON payload -> Metric(s). Name/tag/time keys, string fields and an optional query path."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterable

from cbfeed.models.metric import FieldValue, Metric

if TYPE_CHECKING:
    from cbfeed.config.settings import Settings

_UNIX_DIVISORS = {"unix": 1, "unix_ms": 1_000, "unix_us": 1_000_000, "unix_ns": 1_000_000_000}


class ParseError(ValueError):
    """Payload could not be turned into metrics."""


def _resolve_query(doc: Any, query: str) -> Any:
    """Follow a dotted path ('.changes', 'a.0.b'); integer segments index arrays."""
    node = doc
    for part in query.strip(".").split("."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.lstrip("-").isdigit() and -len(node) <= int(part) < len(node):
            node = node[int(part)]
        else:
            raise ParseError(f"query path {query!r} returned no result")
    return node


def _flatten(prefix: str, value: Any, out: dict[str, Any]) -> None:
    if isinstance(value, dict):
        for k, v in value.items():
            _flatten(f"{prefix}_{k}" if prefix else str(k), v, out)
    elif isinstance(value, list):
        for i, v in enumerate(value):
            _flatten(f"{prefix}_{i}" if prefix else str(i), v, out)
    else:
        out[prefix] = value


def parse_time(value: Any, time_format: str) -> datetime:
    """Parse a time value with 'iso8601'/'rfc3339', 'unix[_ms|_us|_ns]' or a strptime pattern."""
    try:
        if time_format in _UNIX_DIVISORS:
            if isinstance(value, bool):
                raise ValueError("bool is not a timestamp")
            seconds = float(value) / _UNIX_DIVISORS[time_format]
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        if not isinstance(value, str):
            raise ValueError(f"expected string, got {type(value).__name__}")
        if time_format in ("iso8601", "rfc3339"):
            dt = datetime.fromisoformat(value)
        else:
            dt = datetime.strptime(value, time_format)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise ParseError(f"cannot parse time {value!r} as {time_format}: {e}") from e
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class JsonMetricParser:
    """Flattens JSON objects into metrics; numbers become float fields, tag keys become tags."""

    def __init__(
        self,
        measurement: str = "coinbase_marketdata",
        *,
        name_key: str = "",
        time_key: str = "",
        time_format: str = "iso8601",
        tag_keys: Iterable[str] = (),
        string_fields: Iterable[str] = (),
        query: str = "",
    ) -> None:
        self.measurement = measurement
        self.name_key = name_key
        self.time_key = time_key
        self.time_format = time_format
        self.tag_keys = set(tag_keys)
        self.string_fields = set(string_fields)
        self.query = query

    @classmethod
    def from_settings(cls, settings: Settings) -> JsonMetricParser:
        return cls(
            settings.measurement,
            name_key=settings.name_key,
            time_key=settings.time_key,
            time_format=settings.time_format,
            tag_keys=settings.tag_keys,
            string_fields=settings.string_fields,
            query=settings.query,
        )

    def parse(self, data: bytes) -> list[Metric]:
        try:
            doc = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"invalid JSON: {e}") from e
        if self.query:
            doc = _resolve_query(doc, self.query)
        if isinstance(doc, dict):
            return [self._parse_object(doc)]
        if isinstance(doc, list):
            out = []
            for item in doc:
                if not isinstance(item, dict):
                    raise ParseError(f"expected JSON object in array, got {type(item).__name__}")
                out.append(self._parse_object(item))
            return out
        raise ParseError(f"expected JSON object or array, got {type(doc).__name__}")

    def _parse_object(self, obj: dict[str, Any]) -> Metric:
        name = self.measurement
        if self.name_key:
            raw_name = obj.get(self.name_key)
            if isinstance(raw_name, str) and raw_name:
                name = raw_name

        ts = None
        if self.time_key and self.time_key in obj:
            ts = parse_time(obj[self.time_key], self.time_format)

        flat: dict[str, Any] = {}
        _flatten("", obj, flat)

        tags: dict[str, str] = {}
        fields: dict[str, FieldValue] = {}
        for key, value in flat.items():
            if key == self.time_key:
                continue
            if key in self.tag_keys:
                if value is not None:
                    tags[key] = value if isinstance(value, str) else json.dumps(value)
                continue
            if isinstance(value, bool):
                fields[key] = value
            elif isinstance(value, (int, float)):
                fields[key] = float(value)
            elif isinstance(value, str) and key in self.string_fields:
                fields[key] = value
        if ts is None:
            return Metric(name=name, tags=tags, fields=fields)
        return Metric(name=name, tags=tags, fields=fields, time=ts)
