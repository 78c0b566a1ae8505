from __future__ import annotations

import logging
from typing import Optional

from chartfeed import config
from chartfeed.exceptions import InvalidSymbol
from chartfeed.poller import LivePoller, PollSession, StatusCallback
from chartfeed.reconcile import SeriesReconciler
from chartfeed.sinks import ChartSink
from chartfeed.sources import QuoteSource
from chartfeed.timeframes import DEFAULT_RESOLVER, TimeframeResolver, normalize_token
from chartfeed.types import TimeframeSpec, normalize_symbol

logger = logging.getLogger(__name__)


class ChartController:
    """
    Inbound entry points for the UI layer.

    Holds the selected symbol and timeframe and the poller that owns the one
    active PollSession. Selection changes restart polling; an invalid
    selection is rejected before anything else changes.
    """

    def __init__(
        self,
        source: QuoteSource,
        sink: ChartSink,
        resolver: TimeframeResolver = DEFAULT_RESOLVER,
        interval: float = config.POLL_INTERVAL_SECONDS,
        default_timeframe: str = config.DEFAULT_TIMEFRAME,
        on_status: Optional[StatusCallback] = None,
    ):
        self.resolver = resolver
        self._spec = resolver.resolve(default_timeframe)
        self._timeframe = normalize_token(default_timeframe)
        self._symbol: Optional[str] = None
        self.poller = LivePoller(
            source,
            sink,
            interval=interval,
            reconciler=SeriesReconciler(),
            resolver=resolver,
            on_status=on_status,
        )

    @property
    def symbol(self) -> Optional[str]:
        return self._symbol

    @property
    def timeframe(self) -> str:
        return self._timeframe

    @property
    def spec(self) -> TimeframeSpec:
        return self._spec

    @property
    def session(self) -> Optional[PollSession]:
        return self.poller.session

    async def select_symbol(self, symbol: str) -> PollSession:
        normalized = normalize_symbol(symbol)
        if not normalized:
            raise InvalidSymbol(symbol)
        self._symbol = normalized
        return await self.poller.start(normalized, self._timeframe, self._spec)

    async def select_timeframe(self, token: str) -> Optional[PollSession]:
        spec = self.resolver.resolve(token)
        self._timeframe = normalize_token(token)
        self._spec = spec
        if self._symbol is None:
            logger.debug("Timeframe set to %s with no symbol selected", self._timeframe)
            return None
        return await self.poller.start(self._symbol, self._timeframe, spec)

    async def teardown(self) -> None:
        await self.poller.stop()
