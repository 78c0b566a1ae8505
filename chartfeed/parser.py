"""
Quote response parsing.

Turns the loosely structured chart response returned upstream
(``chart.result[0].timestamp`` plus ``indicators.quote[0]`` column lists)
into a validated, time-ordered Series. Malformed input never raises:

- missing containers (chart, result, timestamp, quote) give an empty Series
- rows missing any of open/high/low/close are dropped with their volume
- rows whose time is missing or outside the unix-seconds range are dropped
- missing or negative volume on an otherwise valid row becomes 0
- rows that do not move time strictly forward are dropped and counted in
  ``dropped_out_of_order`` so the caller can report the regression
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

import pandas as pd

from chartfeed.types import EMPTY_SERIES, Candle, Series, VolumePoint

_PRICE_FIELDS = ("open", "high", "low", "close")
_INF = [float("inf"), float("-inf")]
# Unix seconds; negative values cover pre-1970 monthly history.
_MIN_TIME = -(2**32)
_MAX_TIME = 2**35


@dataclass(frozen=True)
class ParseResult:
    series: Series
    raw_rows: int = 0
    dropped_incomplete: int = 0
    dropped_out_of_order: int = 0

    @property
    def regressed(self) -> bool:
        return self.dropped_out_of_order > 0

    @property
    def ok(self) -> bool:
        return not self.series.empty


def _locate_result(raw: Any) -> Optional[Mapping]:
    if not isinstance(raw, Mapping):
        return None
    chart = raw.get("chart")
    if chart is None:
        # Some proxies unwrap the envelope and return the result directly.
        return raw if "timestamp" in raw else None
    if not isinstance(chart, Mapping):
        return None
    results = chart.get("result")
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    return first if isinstance(first, Mapping) else None


def _locate_quote(result: Mapping) -> Optional[Mapping]:
    indicators = result.get("indicators")
    if not isinstance(indicators, Mapping):
        return None
    quotes = indicators.get("quote")
    if not isinstance(quotes, list) or not quotes:
        return None
    quote = quotes[0]
    return quote if isinstance(quote, Mapping) else None


def _scalar(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return float(value)
    except (ValueError, OverflowError):
        # ints beyond float range, non-numeric strings
        return None


def _numeric(values: Any, rows: int) -> pd.Series:
    if not isinstance(values, (list, tuple)):
        values = []
    cleaned: List[Optional[float]] = [_scalar(v) for v in values[:rows]]
    cleaned.extend([None] * (rows - len(cleaned)))
    column = pd.to_numeric(pd.Series(cleaned, dtype=object), errors="coerce").astype(float)
    return column.replace(_INF, float("nan"))


def _empty() -> ParseResult:
    return ParseResult(series=EMPTY_SERIES)


def parse_quote_response(raw: Any) -> ParseResult:
    result = _locate_result(raw)
    if result is None:
        return _empty()
    timestamps = result.get("timestamp")
    quote = _locate_quote(result)
    if not isinstance(timestamps, list) or quote is None:
        return _empty()
    rows = len(timestamps)
    if rows == 0:
        return _empty()

    frame = pd.DataFrame(
        {
            "time": _numeric(timestamps, rows),
            "open": _numeric(quote.get("open"), rows),
            "high": _numeric(quote.get("high"), rows),
            "low": _numeric(quote.get("low"), rows),
            "close": _numeric(quote.get("close"), rows),
            "volume": _numeric(quote.get("volume"), rows),
        }
    )
    frame["time"] = frame["time"].where(frame["time"].between(_MIN_TIME, _MAX_TIME))
    complete = frame.dropna(subset=["time", *_PRICE_FIELDS])
    dropped_incomplete = rows - len(complete)
    volume = complete["volume"].fillna(0.0).clip(lower=0.0)

    candles: List[Candle] = []
    points: List[VolumePoint] = []
    out_of_order = 0
    last_time: Optional[int] = None
    for row, vol in zip(complete.itertuples(index=False), volume):
        ts = int(row.time)
        if last_time is not None and ts <= last_time:
            out_of_order += 1
            continue
        last_time = ts
        candle = Candle(
            time=ts,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
        )
        candles.append(candle)
        points.append(VolumePoint(time=ts, value=float(vol), direction=candle.direction))

    return ParseResult(
        series=Series(candles=tuple(candles), volume=tuple(points)),
        raw_rows=rows,
        dropped_incomplete=dropped_incomplete,
        dropped_out_of_order=out_of_order,
    )


def parse(raw: Any) -> Series:
    return parse_quote_response(raw).series


class QuoteResponseParser:
    def parse(self, raw: Any) -> Series:
        return parse(raw)

    def parse_with_report(self, raw: Any) -> ParseResult:
        return parse_quote_response(raw)
