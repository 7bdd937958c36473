"""Metric - parser output handed to sinks, with influx line protocol rendering."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

FieldValue = bool | int | float | str


def _escape(s: str, chars: str) -> str:
    out = s.replace("\\", "\\\\")
    for c in chars:
        out = out.replace(c, "\\" + c)
    return out


def _format_field(value: FieldValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class Metric(BaseModel):
    """Named measurement with string tags, typed fields and a timestamp."""

    name: str
    tags: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("time")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @property
    def timestamp_ms(self) -> int:
        return self.timestamp_ns // 1_000_000

    @property
    def timestamp_ns(self) -> int:
        # Exact integer math, no float seconds
        delta = self.time - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000

    def to_line_protocol(self) -> str:
        """Render as one influx line: name,tag=v field=v timestamp_ns."""
        head = _escape(self.name, ", ")
        for key in sorted(self.tags):
            head += f",{_escape(key, ',= ')}={_escape(self.tags[key], ',= ')}"
        fields = ",".join(
            f"{_escape(k, ',= ')}={_format_field(v)}" for k, v in sorted(self.fields.items())
        )
        return f"{head} {fields} {self.timestamp_ns}"
