"""Typed records (Ticker, L2Update) and the Metric emitted downstream."""

from cbfeed.models.metric import Metric
from cbfeed.models.records import L2Update, Ticker

__all__ = [
    "Ticker",
    "L2Update",
    "Metric",
]
