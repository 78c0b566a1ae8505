from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Tuple

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from chartfeed import config
from chartfeed.exceptions import TransportFailure, UnknownTimeframe
from chartfeed.parser import parse_quote_response
from chartfeed.poller import LivePoller, StatusEvent
from chartfeed.sinks import QueueSink
from chartfeed.sources import QuoteSource, build_source
from chartfeed.timeframes import DEFAULT_RESOLVER, normalize_token
from chartfeed.types import TimeframeSpec, normalize_symbol

logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="chartfeed API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_TF_DESCRIPTION = "Timeframe, e.g. " + ",".join(DEFAULT_RESOLVER.tokens)


@lru_cache(maxsize=1)
def get_quote_source() -> QuoteSource:
    return build_source(config.SOURCE)


def _validate(symbol: str, tf: str) -> Tuple[str, str, TimeframeSpec]:
    normalized = normalize_symbol(symbol)
    if not normalized:
        raise HTTPException(status_code=400, detail="Invalid symbol")
    try:
        spec = DEFAULT_RESOLVER.resolve(tf)
    except UnknownTimeframe as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return normalized, normalize_token(tf), spec


@app.get("/api/health")
def health():
    return {
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(),
        "source": config.SOURCE,
        "poll_interval": config.POLL_INTERVAL_SECONDS,
    }


@app.get("/api/timeframes")
def list_timeframes():
    return {
        "default": config.DEFAULT_TIMEFRAME,
        "timeframes": [
            {"token": token, "interval": spec.interval, "range": spec.range}
            for token, spec in DEFAULT_RESOLVER.items()
        ],
    }


@app.get("/api/data/{symbol}")
async def get_symbol_data(
    symbol: str,
    tf: str = Query(config.DEFAULT_TIMEFRAME, description=_TF_DESCRIPTION),
    source: QuoteSource = Depends(get_quote_source),
):
    symbol, tf, spec = _validate(symbol, tf)
    try:
        raw = await source.fetch(symbol, spec)
    except TransportFailure as exc:
        logger.warning("Fetch failed for %s %s: %s", symbol, tf, exc)
        raise HTTPException(status_code=502, detail=f"Failed to load data: {exc}") from exc

    result = parse_quote_response(raw)
    if result.regressed:
        logger.warning("Dropped %d out-of-order rows for %s %s", result.dropped_out_of_order, symbol, tf)
    if not result.ok:
        raise HTTPException(status_code=404, detail="No data")
    return {
        "symbol": symbol,
        "timeframe": tf,
        "interval": spec.interval,
        "range": spec.range,
        "dropped_rows": result.dropped_incomplete + result.dropped_out_of_order,
        **result.series.to_payload(),
    }


@app.get("/api/stream/data/{symbol}")
async def stream_symbol_data(
    request: Request,
    symbol: str,
    tf: str = Query(config.DEFAULT_TIMEFRAME, description=_TF_DESCRIPTION),
    source: QuoteSource = Depends(get_quote_source),
):
    symbol, tf, spec = _validate(symbol, tf)
    queue: "asyncio.Queue[Dict[str, object]]" = asyncio.Queue()

    def on_status(event: StatusEvent) -> None:
        if event.kind == "error":
            queue.put_nowait(
                {"symbol": event.symbol, "timeframe": tf, "status": "error", "error": event.message}
            )

    poller = LivePoller(
        source,
        QueueSink(queue, symbol=symbol, timeframe=tf),
        interval=config.POLL_INTERVAL_SECONDS,
        on_status=on_status,
    )

    async def event_stream():
        await poller.start(symbol, tf, spec)
        try:
            while not await request.is_disconnected():
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=config.KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"data: {json.dumps(payload)}\n\n"
        finally:
            await poller.stop()

    return StreamingResponse(event_stream(), media_type="text/event-stream")
