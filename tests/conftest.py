"""
Shared fixtures: chart response builders and an in-memory quote source.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from chartfeed.types import TimeframeSpec


def make_response(
    timestamps: List[Any],
    opens: Optional[List[Any]] = None,
    highs: Optional[List[Any]] = None,
    lows: Optional[List[Any]] = None,
    closes: Optional[List[Any]] = None,
    volumes: Optional[List[Any]] = None,
) -> Dict[str, Any]:
    """Build a Yahoo-shaped chart response; omitted price columns default to 10/12/9/11."""
    n = len(timestamps)
    quote: Dict[str, Any] = {
        "open": opens if opens is not None else [10.0] * n,
        "high": highs if highs is not None else [12.0] * n,
        "low": lows if lows is not None else [9.0] * n,
        "close": closes if closes is not None else [11.0] * n,
    }
    if volumes is not None:
        quote["volume"] = volumes
    return {
        "chart": {
            "result": [{"timestamp": timestamps, "indicators": {"quote": [quote]}}],
            "error": None,
        }
    }


class FakeSource:
    """
    Scripted quote source.

    ``responses`` maps symbol -> list of responses; each fetch pops the next
    one and the last entry repeats. Exceptions in the list are raised. A gate
    (asyncio.Event) per symbol holds fetches until it is set.
    """

    def __init__(self, responses: Optional[Dict[str, List[Any]]] = None):
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[tuple] = []

    async def fetch(self, symbol: str, spec: TimeframeSpec) -> Any:
        self.calls.append((symbol, spec))
        gate = self.gates.get(symbol)
        if gate is not None:
            await gate.wait()
        queue = self.responses.get(symbol) or [{}]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


async def wait_for(predicate, timeout: float = 1.0, step: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(step)


@pytest.fixture
def chart_response():
    return make_response


@pytest.fixture
def fake_source_factory():
    return FakeSource


@pytest.fixture
def waiter():
    return wait_for
