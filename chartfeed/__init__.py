"""
chartfeed - normalized OHLCV series and live chart polling.
"""

from chartfeed.controller import ChartController
from chartfeed.exceptions import (
    ChartFeedError,
    EmptyOrMalformedResponse,
    InvalidSymbol,
    StaleResponse,
    TransportFailure,
    UnknownTimeframe,
)
from chartfeed.parser import ParseResult, QuoteResponseParser, parse, parse_quote_response
from chartfeed.poller import LivePoller, PollSession, SessionState, StatusEvent
from chartfeed.reconcile import Action, Condition, ReconcileDecision, SeriesReconciler, reconcile
from chartfeed.sinks import ChartSink, QueueSink, RecordingSink
from chartfeed.sources import (
    ProxyQuoteSource,
    QuoteSource,
    YahooChartSource,
    YFinanceQuoteSource,
    build_source,
)
from chartfeed.timeframes import DEFAULT_RESOLVER, TimeframeResolver, resolve
from chartfeed.types import Candle, Direction, Series, TimeframeSpec, VolumePoint, normalize_symbol

__all__ = [
    "Action",
    "Candle",
    "ChartController",
    "ChartFeedError",
    "ChartSink",
    "Condition",
    "DEFAULT_RESOLVER",
    "Direction",
    "EmptyOrMalformedResponse",
    "InvalidSymbol",
    "LivePoller",
    "ParseResult",
    "PollSession",
    "ProxyQuoteSource",
    "QueueSink",
    "QuoteResponseParser",
    "QuoteSource",
    "ReconcileDecision",
    "RecordingSink",
    "Series",
    "SeriesReconciler",
    "SessionState",
    "StaleResponse",
    "StatusEvent",
    "TimeframeResolver",
    "TimeframeSpec",
    "TransportFailure",
    "UnknownTimeframe",
    "VolumePoint",
    "YFinanceQuoteSource",
    "YahooChartSource",
    "build_source",
    "normalize_symbol",
    "parse",
    "parse_quote_response",
    "reconcile",
    "resolve",
]
