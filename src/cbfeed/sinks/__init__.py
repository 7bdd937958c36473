from cbfeed.sinks.console import ConsoleSink
from cbfeed.sinks.store import MetricStoreSink

__all__ = ["ConsoleSink", "MetricStoreSink"]
