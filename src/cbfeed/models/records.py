"""Ticker, L2Update - normalized Coinbase feed records."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class Ticker(BaseModel):
    """Ticker update (price, 24h/30d stats, best bid/ask, last trade)."""

    type: Literal["ticker"] = "ticker"
    product_id: str
    side: str
    time: str  # ISO-8601 as sent by the venue
    price: float = 0.0
    open_24h: float = 0.0
    volume_24h: float = 0.0
    low_24h: float = 0.0
    high_24h: float = 0.0
    volume_30d: float = 0.0
    best_bid: float = 0.0
    best_ask: float = 0.0
    last_size: float = 0.0
    sequence_id: int = 0
    trade_id: int = 0


class L2Update(BaseModel):
    """Single level2 change row (one per entry in the frame's 'changes')."""

    type: Literal["l2update"] = "l2update"
    product_id: str
    side: str
    price: float = 0.0
    qty: float = 0.0
    time: str
