"""Pick the most relevant feeding/sleep log for a cry, using tiered recency windows."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_ADJUSTMENT_CONFIG, MINUTE_MS, AdjustmentConfig
from .timestamps import SLEEP_END_FIELDS, resolve_timestamp

logger = logging.getLogger(__name__)

FEEDING_AMOUNT_FIELDS = ("amount", "feedingAmount", "quantity")
SLEEP_DURATION_FIELDS = ("duration", "duration_minutes")


@dataclass(frozen=True)
class ContextSelection:
    event: Optional[Mapping[str, Any]] = None
    in_recent_window: bool = False
    timestamp: Optional[int] = None
    amount: Optional[float] = None
    end_time: Optional[int] = None

    @property
    def has_event(self) -> bool:
        return self.event is not None

    def elapsed_since(self, now_ms: int) -> Optional[int]:
        if self.timestamp is None:
            return None
        return now_ms - self.timestamp

    def elapsed_since_end(self, now_ms: int) -> Optional[int]:
        if self.end_time is None:
            return None
        return now_ms - self.end_time


EMPTY_SELECTION = ContextSelection()


def _sorted_newest_first(events: Iterable[Any]) -> List[Tuple[Optional[int], Mapping[str, Any]]]:
    stamped = [(resolve_timestamp(event), event) for event in events if isinstance(event, Mapping)]
    # Stable sort; unresolvable timestamps go last.
    return sorted(stamped, key=lambda pair: (pair[0] is None, -(pair[0] or 0)))


def select_context(
    events: Optional[Iterable[Any]],
    now_ms: int,
    config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG,
) -> ContextSelection:
    """Choose one representative event.

    Tiers, first match wins:
      1. newest event within ``recent_window_ms`` of now (fresh context);
      2. newest event between the recent and ``extended_window_ms`` windows;
      3. newest event of any age;
      4. nothing.
    Only tier 1 reports ``in_recent_window=True``.
    """

    ordered = _sorted_newest_first(events or [])
    if not ordered:
        return EMPTY_SELECTION

    recent = [
        (ts, event)
        for ts, event in ordered
        if ts is not None and now_ms - ts <= config.recent_window_ms
    ]
    if recent:
        ts, event = recent[0]
        logger.debug("context from recent window", extra={"matches": len(recent)})
        return ContextSelection(event=event, in_recent_window=True, timestamp=ts)

    extended = [
        (ts, event)
        for ts, event in ordered
        if ts is not None and config.recent_window_ms < now_ms - ts <= config.extended_window_ms
    ]
    if extended:
        ts, event = extended[0]
        logger.debug("context from extended window", extra={"matches": len(extended)})
        return ContextSelection(event=event, in_recent_window=False, timestamp=ts)

    ts, event = ordered[0]
    logger.debug("context from oldest fallback", extra={"resolved": ts is not None})
    return ContextSelection(event=event, in_recent_window=False, timestamp=ts)


def _first_number(event: Mapping[str, Any], fields: Iterable[str]) -> Optional[float]:
    for field in fields:
        value = event.get(field)
        if value is None or isinstance(value, bool):
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if number and math.isfinite(number):
            return number
    return None


def feeding_amount(event: Optional[Mapping[str, Any]]) -> float:
    """Feeding volume in ml, or 0 when the log has none."""
    if event is None:
        return 0.0
    return _first_number(event, FEEDING_AMOUNT_FIELDS) or 0.0


def sleep_end_time(event: Optional[Mapping[str, Any]], start_ms: Optional[int]) -> Optional[int]:
    """Start plus duration (minutes); falls back to an explicit wake field."""
    if event is None:
        return None
    duration = _first_number(event, SLEEP_DURATION_FIELDS)
    if start_ms is not None and duration is not None and duration > 0:
        return start_ms + int(duration * MINUTE_MS)
    return resolve_timestamp(event, SLEEP_END_FIELDS)


def select_feeding_context(
    events: Optional[Iterable[Any]],
    now_ms: int,
    config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG,
) -> ContextSelection:
    selection = select_context(events, now_ms, config)
    if not selection.has_event:
        return selection
    return replace(selection, amount=feeding_amount(selection.event))


def select_sleep_context(
    events: Optional[Iterable[Any]],
    now_ms: int,
    config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG,
) -> ContextSelection:
    selection = select_context(events, now_ms, config)
    if not selection.has_event:
        return selection
    return replace(selection, end_time=sleep_end_time(selection.event, selection.timestamp))
