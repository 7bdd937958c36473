"""Coinbase market data WebSocket - default endpoint, sample subscription, connector."""

from __future__ import annotations

import json

from websockets.asyncio.client import ClientConnection, connect

COINBASE_WS_URL = "wss://ws-feed.pro.coinbase.com"

SAMPLE_SUBSCRIPTION = json.dumps(
    {
        "type": "subscribe",
        "product_ids": ["ETH-USD"],
        "channels": [
            "level2",
            "heartbeat",
            {"name": "ticker", "product_ids": ["ETH-USD"]},
        ],
    },
    indent=2,
)


async def connect_websocket(url: str) -> ClientConnection:
    """Open a client connection; the caller owns and closes it."""
    return await connect(
        url,
        ping_interval=20,
        ping_timeout=20,
        close_timeout=5,
        max_size=2**22,
    )
