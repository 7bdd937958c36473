from cbfeed.parsers.json_metric import JsonMetricParser, ParseError

__all__ = ["JsonMetricParser", "ParseError"]
