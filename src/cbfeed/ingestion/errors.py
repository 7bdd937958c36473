"""Feed error taxonomy. Connect/subscribe are fatal; the rest go to the sink's add_error."""

from __future__ import annotations


class FeedError(Exception):
    """Base for all feed errors. `kind` labels the error in logs and the error log."""

    kind: str = "feed"


class ConnectError(FeedError):
    """Transport could not be established."""

    kind = "connect"


class SubscribeError(FeedError):
    """The subscription message could not be written after connect."""

    kind = "subscribe"


class ReadError(FeedError):
    """Reading from the channel failed after subscription; ends the read path."""

    kind = "read"


class DecodeError(FeedError):
    """Inbound frame is not a JSON object."""

    kind = "decode"


class NormalizeError(FeedError):
    """One l2update row (or the changes list itself) could not be normalized."""

    kind = "normalize"


class ForwardError(FeedError):
    """Parser or sink rejected a derived record."""

    kind = "forward"
