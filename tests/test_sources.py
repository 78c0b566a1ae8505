"""
Tests for upstream quote sources with mocked transports.
"""

from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

from chartfeed.exceptions import TransportFailure
from chartfeed.parser import parse
from chartfeed.sources import (
    ProxyQuoteSource,
    YahooChartSource,
    YFinanceQuoteSource,
    build_source,
    frame_to_chart_response,
)
from chartfeed.types import TimeframeSpec

SPEC = TimeframeSpec(interval="15m", range="3mo")


def _response(payload=None, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("chartfeed.sources.time.sleep") as sleep:
        yield sleep


class TestProxyQuoteSource:
    async def test_fetch_passes_symbol_interval_range(self, chart_response):
        session = MagicMock()
        session.get.return_value = _response(chart_response([1]))
        source = ProxyQuoteSource(base_url="https://proxy.example/", session=session)

        raw = await source.fetch("AAPL", SPEC)

        assert parse(raw).times() == [1]
        args, kwargs = session.get.call_args
        assert args[0] == "https://proxy.example/"
        assert kwargs["params"] == {"symbol": "AAPL", "interval": "15m", "range": "3mo"}

    def test_http_error_raises_transport_failure(self):
        session = MagicMock()
        session.get.return_value = _response(status=503)
        source = ProxyQuoteSource(base_url="https://proxy.example/", retries=2, session=session)

        with pytest.raises(TransportFailure) as exc_info:
            source.fetch_sync("AAPL", SPEC)

        assert exc_info.value.status_code == 503
        assert session.get.call_count == 2

    def test_retry_recovers(self, chart_response, no_sleep):
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            _response(chart_response([1, 2])),
        ]
        source = ProxyQuoteSource(base_url="https://proxy.example/", retries=3, session=session)

        raw = source.fetch_sync("AAPL", SPEC)

        assert parse(raw).times() == [1, 2]
        no_sleep.assert_called_once_with(0.25)

    def test_undecodable_json_is_transport_failure(self):
        resp = _response()
        resp.json.side_effect = ValueError("Expecting value")
        session = MagicMock()
        session.get.return_value = resp
        source = ProxyQuoteSource(base_url="https://proxy.example/", retries=1, session=session)

        with pytest.raises(TransportFailure):
            source.fetch_sync("AAPL", SPEC)

    def test_module_level_requests_used_without_session(self, chart_response):
        with patch("chartfeed.sources.requests.get", return_value=_response(chart_response([7]))) as get:
            raw = ProxyQuoteSource(base_url="https://proxy.example/").fetch_sync("AAPL", SPEC)
        assert parse(raw).times() == [7]
        assert get.call_count == 1


class TestYahooChartSource:
    def test_symbol_in_path(self, chart_response):
        session = MagicMock()
        session.get.return_value = _response(chart_response([1]))
        source = YahooChartSource(base_url="https://yahoo.example/v8/finance/chart/", session=session)

        source.fetch_sync("NQ=F", SPEC)

        args, kwargs = session.get.call_args
        assert args[0] == "https://yahoo.example/v8/finance/chart/NQ%3DF"
        assert kwargs["params"]["interval"] == "15m"
        assert kwargs["params"]["range"] == "3mo"
        assert "symbol" not in kwargs["params"]


def _frame(index=None):
    index = index if index is not None else pd.to_datetime([100, 160, 220], unit="s", utc=True)
    return pd.DataFrame(
        {
            "Open": [10.0, 11.0, float("nan")],
            "High": [12.0, 13.0, 14.0],
            "Low": [9.0, 10.0, 11.0],
            "Close": [11.0, 12.0, 13.0],
            "Adj Close": [11.0, 12.0, 13.0],
            "Volume": [1000, 2000, 3000],
        },
        index=index,
    )


class TestFrameToChartResponse:
    def test_flat_frame(self):
        raw = frame_to_chart_response(_frame(), "AAPL")
        result = raw["chart"]["result"][0]
        assert result["timestamp"] == [100, 160, 220]
        assert result["indicators"]["quote"][0]["open"] == [10.0, 11.0, None]
        assert parse(raw).times() == [100, 160]

    def test_multiindex_field_ticker_columns(self):
        df = _frame()
        df.columns = pd.MultiIndex.from_product([df.columns, ["AAPL"]])
        assert parse(frame_to_chart_response(df, "AAPL")).times() == [100, 160]

    def test_multiindex_missing_symbol_is_empty(self):
        df = _frame()
        df.columns = pd.MultiIndex.from_product([df.columns, ["MSFT"]])
        raw = frame_to_chart_response(df, "AAPL")
        assert parse(raw).empty

    def test_empty_frame(self):
        assert parse(frame_to_chart_response(pd.DataFrame(), "AAPL")).empty


class TestYFinanceQuoteSource:
    async def test_fetch_downloads_with_spec(self):
        with patch("chartfeed.sources.yf.download", return_value=_frame()) as download:
            raw = await YFinanceQuoteSource(retries=1).fetch("AAPL", SPEC)

        assert parse(raw).times() == [100, 160]
        kwargs = download.call_args.kwargs
        assert kwargs["period"] == "3mo"
        assert kwargs["interval"] == "15m"

    def test_download_error_is_transport_failure(self):
        with patch("chartfeed.sources.yf.download", side_effect=RuntimeError("rate limited")):
            with pytest.raises(TransportFailure):
                YFinanceQuoteSource(retries=2).fetch_sync("AAPL", SPEC)

    def test_empty_download_is_no_data(self):
        with patch("chartfeed.sources.yf.download", return_value=pd.DataFrame()):
            raw = YFinanceQuoteSource(retries=2).fetch_sync("AAPL", SPEC)
        assert parse(raw).empty


class TestBuildSource:
    @pytest.mark.parametrize(
        "kind,cls",
        [("proxy", ProxyQuoteSource), ("yahoo", YahooChartSource), ("YFinance", YFinanceQuoteSource)],
    )
    def test_kinds(self, kind, cls):
        assert type(build_source(kind)) is cls

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            build_source("bloomberg")
