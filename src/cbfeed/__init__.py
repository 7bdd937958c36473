"""cbfeed - Coinbase market data feed: websocket ingestion, normalization, metric emission."""

__version__ = "0.1.0"
