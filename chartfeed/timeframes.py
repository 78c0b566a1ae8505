from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from chartfeed.exceptions import UnknownTimeframe
from chartfeed.types import TimeframeSpec

# UI token -> (sampling interval, lookback range) as understood upstream.
_TIMEFRAMES: Dict[str, Tuple[str, str]] = {
    "1m": ("1m", "7d"),
    "5m": ("5m", "1mo"),
    "15m": ("15m", "3mo"),
    "30m": ("30m", "3mo"),
    "1h": ("1h", "6mo"),
    "1d": ("1d", "1y"),
    "1w": ("1wk", "5y"),
    "1mo": ("1mo", "max"),
}


def normalize_token(token: object) -> str:
    if not isinstance(token, str):
        return ""
    return token.strip().lower()


class TimeframeResolver:
    """Pure mapping from UI timeframe tokens to upstream fetch parameters."""

    def __init__(self, table: Optional[Mapping[str, Tuple[str, str]]] = None):
        source = _TIMEFRAMES if table is None else table
        specs: Dict[str, TimeframeSpec] = {}
        for raw_token, (interval, lookback) in source.items():
            token = normalize_token(raw_token)
            if not token:
                raise ValueError(f"Empty timeframe token: {raw_token!r}")
            if token in specs:
                raise ValueError(f"Duplicate timeframe token: {raw_token!r}")
            specs[token] = TimeframeSpec(interval=interval, range=lookback)
        self._specs = specs

    def resolve(self, token: str) -> TimeframeSpec:
        spec = self._specs.get(normalize_token(token))
        if spec is None:
            raise UnknownTimeframe(token)
        return spec

    @property
    def tokens(self) -> List[str]:
        return list(self._specs)

    def items(self) -> Iterator[Tuple[str, TimeframeSpec]]:
        return iter(self._specs.items())

    def __contains__(self, token: object) -> bool:
        return normalize_token(token) in self._specs


DEFAULT_RESOLVER = TimeframeResolver()


def resolve(token: str) -> TimeframeSpec:
    return DEFAULT_RESOLVER.resolve(token)
