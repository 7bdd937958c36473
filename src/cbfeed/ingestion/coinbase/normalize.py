"""Coinbase WS message -> Ticker / L2Update records. Pure; never raises on bad field values."""

from __future__ import annotations

import math
from typing import Any, Callable

from cbfeed.ingestion.errors import NormalizeError
from cbfeed.models.records import L2Update, Ticker

# Decoded JSON value tree: null / bool / number / string / array / object
JsonValue = bool | int | float | str | list["JsonValue"] | dict[str, "JsonValue"] | None
RawEvent = dict[str, JsonValue]

ErrorCallback = Callable[[Exception], None]


def as_float(v: Any) -> float:
    """Decimal from a number or numeric string; 0.0 on any other shape."""
    if isinstance(v, bool) or v is None:
        return 0.0
    if isinstance(v, (int, float)):
        out = float(v)
    elif isinstance(v, str):
        try:
            out = float(v.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return out if math.isfinite(out) else 0.0


def as_int(v: Any) -> int:
    """Integer from an int, integral float or integer string; 0 otherwise."""
    if isinstance(v, bool) or v is None:
        return 0
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v) if math.isfinite(v) and v.is_integer() else 0
    if isinstance(v, str):
        try:
            return int(v.strip())
        except ValueError:
            return 0
    return 0


def as_text(v: Any) -> str:
    """Textual form of whatever was present, including a missing value."""
    return v if isinstance(v, str) else str(v)


def _parse_decimal(v: Any) -> float | None:
    """Strict variant for l2update rows: None when the value is not a finite number."""
    if isinstance(v, bool) or v is None:
        return None
    try:
        out = float(v)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def normalize_ticker(payload: RawEvent) -> Ticker:
    """
    Convert a 'ticker' message to Ticker. Each field is coerced on its own:
    {"type": "ticker", "sequence": 12238444095, "product_id": "ETH-USD", "price": "731.99",
     "open_24h": "684.11", "volume_24h": "395831.08785795", "low_24h": "680.9", "high_24h": "747",
     "volume_30d": "6144317.83380943", "best_bid": "731.83", "best_ask": "731.99", "side": "buy",
     "time": "2020-12-28T23:54:32.051347Z", "trade_id": 71476932, "last_size": "0.24169456"}
    """
    return Ticker(
        product_id=as_text(payload.get("product_id")),
        side=as_text(payload.get("side")),
        time=as_text(payload.get("time")),
        price=as_float(payload.get("price")),
        open_24h=as_float(payload.get("open_24h")),
        volume_24h=as_float(payload.get("volume_24h")),
        low_24h=as_float(payload.get("low_24h")),
        high_24h=as_float(payload.get("high_24h")),
        volume_30d=as_float(payload.get("volume_30d")),
        best_bid=as_float(payload.get("best_bid")),
        best_ask=as_float(payload.get("best_ask")),
        last_size=as_float(payload.get("last_size")),
        sequence_id=as_int(payload.get("sequence")),
        trade_id=as_int(payload.get("trade_id")),
    )


def normalize_l2update(payload: RawEvent, on_error: ErrorCallback | None = None) -> list[L2Update]:
    """
    Convert an 'l2update' message to one L2Update per entry in 'changes', in row order:
    {"type": "l2update", "product_id": "ETH-USD", "changes": [["sell", "731.99", "1.24025886"]],
     "time": "2020-12-28T23:54:32.051347Z"}
    Malformed rows are skipped and reported through on_error; the remaining rows still come out.
    """
    report = on_error or (lambda err: None)
    changes = payload.get("changes")
    if not isinstance(changes, list):
        report(NormalizeError(f"l2update 'changes' is not a list: {changes!r}"))
        return []
    product_id = as_text(payload.get("product_id"))
    ts = as_text(payload.get("time"))
    out = []
    for i, row in enumerate(changes):
        if not isinstance(row, list) or len(row) != 3:
            report(NormalizeError(f"l2update row {i} is not [side, price, qty]: {row!r}"))
            continue
        price = _parse_decimal(row[1])
        qty = _parse_decimal(row[2])
        if price is None or qty is None:
            report(NormalizeError(f"l2update row {i} has non-numeric price/qty: {row!r}"))
            continue
        out.append(
            L2Update(
                product_id=product_id,
                side=as_text(row[0]),
                price=price,
                qty=qty,
                time=ts,
            )
        )
    return out
