from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from chartfeed.types import Series


class Action(str, Enum):
    REPLACE_ALL = "replace_all"
    KEEP_PREVIOUS = "keep_previous"


class Condition(str, Enum):
    EMPTY = "empty"  # incoming series had no usable rows
    STALE = "stale"  # incoming series ends before the displayed one
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class ReconcileDecision:
    action: Action
    series: Optional[Series] = None
    condition: Optional[Condition] = None
    new_bars: int = 0

    @property
    def replaces(self) -> bool:
        return self.action is Action.REPLACE_ALL


def _replace(incoming: Series, new_bars: int) -> ReconcileDecision:
    return ReconcileDecision(Action.REPLACE_ALL, series=incoming, new_bars=new_bars)


def _keep(condition: Condition) -> ReconcileDecision:
    return ReconcileDecision(Action.KEEP_PREVIOUS, condition=condition)


def reconcile(previous: Optional[Series], incoming: Series) -> ReconcileDecision:
    """
    Decide how a freshly fetched series updates the displayed one.

    Any forward progress, or a change to the still-forming last bar, replaces
    the whole series. The displayed series never moves backwards in time and
    is never cleared by an empty response.
    """
    if incoming.empty:
        return _keep(Condition.EMPTY)
    if previous is None or previous.empty:
        return _replace(incoming, len(incoming))

    prev_last = previous.last_time
    new_last = incoming.last_time
    if new_last < prev_last:
        return _keep(Condition.STALE)
    if new_last > prev_last:
        return _replace(incoming, incoming.bars_after(prev_last))
    if incoming == previous:
        return _keep(Condition.UNCHANGED)
    return _replace(incoming, 0)


class SeriesReconciler:
    def reconcile(self, previous: Optional[Series], incoming: Series) -> ReconcileDecision:
        return reconcile(previous, incoming)
