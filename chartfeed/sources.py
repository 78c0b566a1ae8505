"""
Upstream quote sources.

Each source returns the raw, untrusted chart response for one symbol and
timeframe; parsing is left to ``chartfeed.parser``. Blocking HTTP work runs
in a worker thread so a slow upstream only suspends the calling task.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol
from urllib.parse import quote as url_quote

import pandas as pd
import requests
import yfinance as yf

from chartfeed import config
from chartfeed.exceptions import TransportFailure
from chartfeed.types import TimeframeSpec

logger = logging.getLogger(__name__)

_OHLC_FIELDS = {"Open", "High", "Low", "Close", "Adj Close", "Volume"}
_USER_AGENT = "Mozilla/5.0 (compatible; chartfeed/1.0)"


class QuoteSource(Protocol):
    async def fetch(self, symbol: str, spec: TimeframeSpec) -> Mapping[str, Any]: ...


def _requests_json_with_retry(
    url: str,
    *,
    params: Dict[str, object],
    retries: int = config.FETCH_RETRIES,
    timeout: int = config.FETCH_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
) -> Any:
    getter = session.get if session is not None else requests.get
    last_error: Optional[Exception] = None
    for attempt in range(max(1, retries)):
        try:
            resp = getter(url, params=params, timeout=timeout, headers={"User-Agent": _USER_AGENT})
            resp.raise_for_status()
            return resp.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            last_error = TransportFailure(f"Upstream returned HTTP {status}", status_code=status)
        except (requests.RequestException, ValueError) as exc:
            last_error = TransportFailure(f"Upstream request failed: {exc}")
        logger.debug("Fetch attempt %d/%d for %s failed: %s", attempt + 1, retries, url, last_error)
        if attempt < retries - 1:
            time.sleep(0.25 * (attempt + 1))
    raise last_error or TransportFailure("Upstream request failed")


class ProxyQuoteSource:
    """Chart proxy taking ``symbol``, ``interval`` and ``range`` as query params."""

    def __init__(
        self,
        base_url: str = config.PROXY_URL,
        timeout: int = config.FETCH_TIMEOUT_SECONDS,
        retries: int = config.FETCH_RETRIES,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.retries = retries
        self.session = session

    def _url(self, symbol: str) -> str:
        return self.base_url

    def _params(self, symbol: str, spec: TimeframeSpec) -> Dict[str, object]:
        return {"symbol": symbol, "interval": spec.interval, "range": spec.range}

    def fetch_sync(self, symbol: str, spec: TimeframeSpec) -> Any:
        return _requests_json_with_retry(
            self._url(symbol),
            params=self._params(symbol, spec),
            retries=self.retries,
            timeout=self.timeout,
            session=self.session,
        )

    async def fetch(self, symbol: str, spec: TimeframeSpec) -> Any:
        return await asyncio.to_thread(self.fetch_sync, symbol, spec)


class YahooChartSource(ProxyQuoteSource):
    """Public Yahoo v8 chart endpoint, symbol in the path."""

    def __init__(self, base_url: str = config.YAHOO_URL, **kwargs):
        super().__init__(base_url=base_url, **kwargs)

    def _url(self, symbol: str) -> str:
        return f"{self.base_url.rstrip('/')}/{url_quote(symbol, safe='')}"

    def _params(self, symbol: str, spec: TimeframeSpec) -> Dict[str, object]:
        return {"interval": spec.interval, "range": spec.range, "includePrePost": "false"}


def _extract_symbol_df(df: pd.DataFrame, symbol: str) -> pd.DataFrame:
    if not isinstance(df.columns, pd.MultiIndex):
        return df
    level0 = df.columns.get_level_values(0)
    level1 = df.columns.get_level_values(1)
    if set(level1).issubset(_OHLC_FIELDS):
        return df[symbol] if symbol in level0 else pd.DataFrame()
    if set(level0).issubset(_OHLC_FIELDS):
        return df.xs(symbol, level=1, axis=1) if symbol in level1 else pd.DataFrame()
    return pd.DataFrame()


def _clean(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) else number


def frame_to_chart_response(df: pd.DataFrame, symbol: str) -> Dict[str, Any]:
    """Reshape a yfinance frame into the chart response the parser reads."""
    df = _extract_symbol_df(df, symbol)
    if df.empty:
        return {"chart": {"result": [], "error": None}}
    timestamps = [int(pd.Timestamp(ts).timestamp()) for ts in df.index]
    quote: Dict[str, List[Optional[float]]] = {}
    for field in ("Open", "High", "Low", "Close", "Volume"):
        column = df[field] if field in df.columns else pd.Series([None] * len(df), index=df.index)
        quote[field.lower()] = [_clean(v) for v in column.tolist()]
    return {
        "chart": {
            "result": [
                {
                    "meta": {"symbol": symbol},
                    "timestamp": timestamps,
                    "indicators": {"quote": [quote]},
                }
            ],
            "error": None,
        }
    }


class YFinanceQuoteSource:
    def __init__(
        self,
        timeout: int = config.FETCH_TIMEOUT_SECONDS,
        retries: int = config.FETCH_RETRIES,
    ):
        self.timeout = timeout
        self.retries = retries

    def _download(self, symbol: str, spec: TimeframeSpec) -> pd.DataFrame:
        last_error: Optional[Exception] = None
        for attempt in range(max(1, self.retries)):
            try:
                df = yf.download(
                    symbol,
                    period=spec.range,
                    interval=spec.interval,
                    progress=False,
                    auto_adjust=False,
                    timeout=self.timeout,
                    threads=False,
                )
                if isinstance(df, pd.DataFrame) and not df.empty:
                    return df
                last_error = None
            except Exception as exc:
                last_error = exc
            if attempt < self.retries - 1:
                time.sleep(0.35 * (attempt + 1))
        if last_error:
            raise TransportFailure(f"yfinance download failed: {last_error}") from last_error
        return pd.DataFrame()

    def fetch_sync(self, symbol: str, spec: TimeframeSpec) -> Dict[str, Any]:
        return frame_to_chart_response(self._download(symbol, spec), symbol)

    async def fetch(self, symbol: str, spec: TimeframeSpec) -> Dict[str, Any]:
        return await asyncio.to_thread(self.fetch_sync, symbol, spec)


def build_source(kind: str = config.SOURCE) -> QuoteSource:
    kind = (kind or "").strip().lower()
    if kind == "proxy":
        return ProxyQuoteSource()
    if kind == "yahoo":
        return YahooChartSource()
    if kind == "yfinance":
        return YFinanceQuoteSource()
    raise ValueError(f"Unknown quote source: {kind!r}")
