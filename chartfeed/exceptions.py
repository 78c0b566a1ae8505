"""
Chart feed exceptions.

Every condition the feed can report derives from ChartFeedError.
"""

from __future__ import annotations


class ChartFeedError(Exception):
    """Base exception for all chart feed errors."""


class UnknownTimeframe(ChartFeedError):
    """Raised when a UI timeframe token has no mapping."""

    def __init__(self, token: str):
        super().__init__(f"Unknown timeframe: {token!r}")
        self.token = token


class InvalidSymbol(ChartFeedError):
    """Raised when a symbol is empty after normalization."""

    def __init__(self, raw: object):
        super().__init__(f"Invalid symbol: {raw!r}")
        self.raw = raw


class TransportFailure(ChartFeedError):
    """Raised when the upstream fetch is rejected or returns a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyOrMalformedResponse(ChartFeedError):
    """Raised when a response parses to zero usable rows."""


class StaleResponse(ChartFeedError):
    """Reported when an incoming series ends before the displayed one."""
