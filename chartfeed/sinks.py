from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Protocol, Sequence

from chartfeed.types import Candle, VolumePoint


class ChartSink(Protocol):
    """Write-only rendering target for normalized series."""

    def set_candles(self, candles: Sequence[Candle]) -> None: ...

    def set_volume(self, volume: Sequence[VolumePoint]) -> None: ...

    def fit_visible_range(self) -> None: ...


class RecordingSink:
    def __init__(self):
        self.candles: List[Candle] = []
        self.volume: List[VolumePoint] = []
        self.fits = 0

    def set_candles(self, candles: Sequence[Candle]) -> None:
        self.candles = list(candles)

    def set_volume(self, volume: Sequence[VolumePoint]) -> None:
        self.volume = list(volume)

    def fit_visible_range(self) -> None:
        self.fits += 1

    @property
    def last_time(self) -> Optional[int]:
        return self.candles[-1].time if self.candles else None


class QueueSink:
    """
    Buffers one frame and publishes it as a JSON-ready payload.

    ``fit_visible_range`` closes the frame: whatever candles and volume were
    set since the previous fit go onto the queue together.
    """

    def __init__(self, queue: "asyncio.Queue[Dict[str, object]]", symbol: str = "", timeframe: str = ""):
        self.queue = queue
        self.symbol = symbol
        self.timeframe = timeframe
        self._candles: List[Dict[str, object]] = []
        self._volume: List[Dict[str, object]] = []

    def set_candles(self, candles: Sequence[Candle]) -> None:
        self._candles = [c.to_dict() for c in candles]

    def set_volume(self, volume: Sequence[VolumePoint]) -> None:
        self._volume = [v.to_dict() for v in volume]

    def fit_visible_range(self) -> None:
        latest_time = int(self._candles[-1]["time"]) if self._candles else 0
        self.queue.put_nowait(
            {
                "symbol": self.symbol,
                "timeframe": self.timeframe,
                "latest_time": latest_time,
                "candles": self._candles,
                "volume": self._volume,
            }
        )
