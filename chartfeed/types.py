from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

UP_COLOR = "#00d084"
DOWN_COLOR = "#ff5a5f"

_SYMBOL_STRIP = re.compile(r"[^A-Z0-9=\-.\^/]")


def normalize_symbol(raw: object) -> str:
    if raw is None:
        return ""
    # Allow common ticker chars: letters, digits, '=', '-', '.', '^', '/'
    return _SYMBOL_STRIP.sub("", str(raw).strip().upper())


@dataclass(frozen=True)
class TimeframeSpec:
    interval: str  # sampling interval, e.g. "15m"
    range: str  # lookback range, e.g. "3mo"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Candle:
    time: int  # unix seconds
    open: float
    high: float
    low: float
    close: float

    @property
    def direction(self) -> Direction:
        return Direction.UP if self.close >= self.open else Direction.DOWN

    def to_dict(self) -> Dict[str, object]:
        return {
            "time": self.time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }


@dataclass(frozen=True)
class VolumePoint:
    time: int  # unix seconds
    value: float
    direction: Direction

    def to_dict(self) -> Dict[str, object]:
        up = self.direction is Direction.UP
        return {
            "time": self.time,
            "value": self.value,
            "direction": self.direction.value,
            "color": UP_COLOR if up else DOWN_COLOR,
        }


@dataclass(frozen=True)
class Series:
    """
    Candles and volume on a shared, strictly increasing time axis.

    Built fresh on every fetch cycle and never mutated afterwards.
    """

    candles: Tuple[Candle, ...] = ()
    volume: Tuple[VolumePoint, ...] = ()

    def __post_init__(self):
        if len(self.candles) != len(self.volume):
            raise ValueError("candles and volume must have the same length")

    def __len__(self) -> int:
        return len(self.candles)

    @property
    def empty(self) -> bool:
        return not self.candles

    @property
    def last_time(self) -> Optional[int]:
        return self.candles[-1].time if self.candles else None

    @property
    def last_candle(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def last_volume(self) -> Optional[VolumePoint]:
        return self.volume[-1] if self.volume else None

    def times(self) -> List[int]:
        return [c.time for c in self.candles]

    def bars_after(self, since: int) -> int:
        return sum(1 for c in self.candles if c.time > since)

    def to_payload(self) -> Dict[str, object]:
        return {
            "candles": [c.to_dict() for c in self.candles],
            "volume": [v.to_dict() for v in self.volume],
            "latest_time": self.last_time or 0,
        }


EMPTY_SERIES = Series()
