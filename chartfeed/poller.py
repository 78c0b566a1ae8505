"""
Live polling of one symbol/timeframe at a time.

A PollSession moves IDLE -> ACTIVE -> CANCELLED. The poller owns the single
current session; starting a new one cancels the previous one first. Ticks
check their own session's liveness after the fetch returns, so a response
that arrives for a superseded session never reaches the sink.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Set

from chartfeed import config
from chartfeed.exceptions import EmptyOrMalformedResponse, StaleResponse, TransportFailure
from chartfeed.parser import parse_quote_response
from chartfeed.reconcile import Condition, ReconcileDecision, SeriesReconciler
from chartfeed.sinks import ChartSink
from chartfeed.sources import QuoteSource
from chartfeed.timeframes import DEFAULT_RESOLVER, TimeframeResolver, normalize_token
from chartfeed.types import Series, TimeframeSpec

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No usable candle data returned"


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StatusEvent:
    kind: str  # "loading" | "error" | "loaded"
    symbol: str
    message: str = ""


StatusCallback = Callable[[StatusEvent], None]


@dataclass(eq=False)
class PollSession:
    symbol: str
    timeframe: str
    spec: TimeframeSpec
    state: SessionState = SessionState.IDLE
    series: Optional[Series] = None
    ticks: int = 0
    failures: int = 0
    skipped: int = 0
    in_flight: bool = False
    _loop_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _tick_task: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def cancel(self) -> Optional[asyncio.Task]:
        """Cancel the session; safe to call repeatedly. Returns the scheduling task, if any."""
        if self.state is SessionState.CANCELLED:
            return None
        self.state = SessionState.CANCELLED
        task = self._loop_task
        if task is not None and not task.done():
            task.cancel()
        return task


class LivePoller:
    def __init__(
        self,
        source: QuoteSource,
        sink: ChartSink,
        interval: float = config.POLL_INTERVAL_SECONDS,
        reconciler: Optional[SeriesReconciler] = None,
        resolver: TimeframeResolver = DEFAULT_RESOLVER,
        on_status: Optional[StatusCallback] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.source = source
        self.sink = sink
        self.interval = interval
        self.reconciler = reconciler or SeriesReconciler()
        self.resolver = resolver
        self.on_status = on_status
        self._session: Optional[PollSession] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def session(self) -> Optional[PollSession]:
        return self._session

    async def start(
        self,
        symbol: str,
        timeframe: str,
        spec: Optional[TimeframeSpec] = None,
    ) -> PollSession:
        """
        Replace the current session with one for ``symbol``/``timeframe``.

        Runs the first cycle before returning, then leaves a background task
        ticking every ``interval`` seconds until the session is cancelled.
        Raises UnknownTimeframe before touching the current session.
        """
        if spec is None:
            spec = self.resolver.resolve(timeframe)
        self._cancel_current()

        session = PollSession(symbol=symbol, timeframe=normalize_token(timeframe), spec=spec)
        session.state = SessionState.ACTIVE
        self._session = session
        logger.info(
            "Polling %s at %s/%s every %.1fs", symbol, spec.interval, spec.range, self.interval
        )

        await self._cycle(session, initial=True)
        if session.active:
            session._loop_task = asyncio.create_task(
                self._run(session), name=f"poll:{symbol}:{session.timeframe}"
            )
        return session

    async def stop(self) -> None:
        session = self._session
        self._session = None
        current = asyncio.current_task()
        if session is not None:
            session.cancel()
            logger.info("Stopped polling %s", session.symbol)
            task = session._loop_task
            if task is not None and task is not current:
                with suppress(asyncio.CancelledError):
                    await task

        # Ticks still waiting on a fetch, including ones from superseded sessions.
        pending = [t for t in self._ticks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _cancel_current(self) -> None:
        previous = self._session
        self._session = None
        if previous is not None and previous.active:
            previous.cancel()
            logger.info("Cancelled polling %s (superseded)", previous.symbol)

    async def _run(self, session: PollSession) -> None:
        while session.active:
            await asyncio.sleep(self.interval)
            if not session.active:
                break
            if session.in_flight:
                session.skipped += 1
                logger.debug("Skipping tick for %s: previous tick still in flight", session.symbol)
                continue
            task = asyncio.create_task(self._cycle(session))
            session._tick_task = task
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)

    async def _cycle(self, session: PollSession, initial: bool = False) -> Optional[ReconcileDecision]:
        session.in_flight = True
        try:
            if initial:
                self._emit(session, "loading")
            try:
                raw = await self.source.fetch(session.symbol, session.spec)
            except TransportFailure as exc:
                self._fail(session, initial, f"Failed to load data: {exc}", exc)
                return None
            except Exception as exc:
                logger.exception("Unexpected error fetching %s", session.symbol)
                self._fail(session, initial, f"Failed to load data: {exc}", exc)
                return None

            result = parse_quote_response(raw)
            if result.regressed:
                logger.warning(
                    "Dropped %d out-of-order rows for %s (%s/%s)",
                    result.dropped_out_of_order,
                    session.symbol,
                    session.spec.interval,
                    session.spec.range,
                )

            if not session.active:
                logger.debug("Discarding response for cancelled session %s", session.symbol)
                return None

            decision = self.reconciler.reconcile(session.series, result.series)
            session.ticks += 1
            if decision.condition is Condition.EMPTY:
                exc = EmptyOrMalformedResponse(f"{session.symbol}: {result.raw_rows} raw rows, none usable")
                self._fail(session, initial, NO_DATA_MESSAGE, exc)
                return decision
            if decision.condition is Condition.STALE:
                stale = StaleResponse(
                    f"{session.symbol}: incoming ends at {result.series.last_time}, "
                    f"displayed ends at {session.series.last_time}"
                )
                logger.debug("Keeping previous series: %s", stale)
            if decision.replaces:
                first_render = session.series is None
                try:
                    self._render(decision.series)
                except Exception as exc:
                    # session.series is left as is so the next tick renders again
                    logger.exception("Rendering %s failed", session.symbol)
                    self._fail(session, initial, f"Failed to render data: {exc}", exc)
                    return decision
                session.series = decision.series
                if first_render:
                    self._emit(session, "loaded")
            return decision
        finally:
            session.in_flight = False

    def _render(self, series: Series) -> None:
        self.sink.set_candles(series.candles)
        self.sink.set_volume(series.volume)
        self.sink.fit_visible_range()

    def _fail(self, session: PollSession, initial: bool, message: str, exc: Exception) -> None:
        session.failures += 1
        logger.warning("%s failed for %s: %s", "Initial load" if initial else "Poll tick", session.symbol, exc)
        if initial:
            self._emit(session, "error", message)

    def _emit(self, session: PollSession, kind: str, message: str = "") -> None:
        if self.on_status is None or not session.active:
            return
        self.on_status(StatusEvent(kind=kind, symbol=session.symbol, message=message))
