"""Resolve caregiving event timestamps stored in mixed encodings."""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIME_FIELDS = ("_timestampMs", "timestamp", "createdAt", "created_at", "loggedAt", "time", "date")
SLEEP_END_FIELDS = ("endTime", "end_time", "woke_at")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(round((value - _EPOCH).total_seconds() * 1000))


def _from_date_like(value: Any) -> Optional[int]:
    if isinstance(value, datetime):
        return _datetime_to_ms(value)
    if isinstance(value, date):
        return _datetime_to_ms(datetime(value.year, value.month, value.day))
    # Firestore / protobuf timestamps expose a converter instead of being datetimes.
    for attr in ("to_datetime", "ToDatetime"):
        converter = getattr(value, attr, None)
        if callable(converter):
            converted = converter()
            if isinstance(converted, datetime):
                return _datetime_to_ms(converted)
    return None


def _from_seconds_struct(value: Any) -> Optional[int]:
    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
    else:
        seconds = getattr(value, "seconds", None)
        nanos = getattr(value, "nanoseconds", 0)
    if not _is_number(seconds):
        return None
    if not _is_number(nanos):
        nanos = 0
    return int(seconds * 1000 + nanos // 1_000_000)


def _from_epoch(value: Any) -> Optional[int]:
    if not _is_number(value):
        return None
    return int(value)


def _from_iso_string(value: Any) -> Optional[int]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _datetime_to_ms(datetime.fromisoformat(text))


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


# Order matters: the first strategy that produces a value wins.
STRATEGIES: Sequence[Callable[[Any], Optional[int]]] = (
    _from_date_like,
    _from_seconds_struct,
    _from_epoch,
    _from_iso_string,
)


def coerce_timestamp(value: Any) -> Optional[int]:
    """Convert a single time value to epoch milliseconds, or None."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    for strategy in STRATEGIES:
        try:
            resolved = strategy(value)
        except Exception:  # malformed input is treated as absent data
            logger.debug("timestamp strategy failed", extra={"strategy": strategy.__name__})
            continue
        if resolved is not None:
            return resolved
    return None


def resolve_timestamp(
    event: Any,
    fields: Iterable[str] = DEFAULT_TIME_FIELDS,
) -> Optional[int]:
    """Return the first resolvable timestamp among ``fields`` of ``event``."""

    if not isinstance(event, Mapping):
        return None
    for field in fields:
        try:
            value = event.get(field)
        except Exception:
            continue
        resolved = coerce_timestamp(value)
        if resolved is not None:
            return resolved
    return None
