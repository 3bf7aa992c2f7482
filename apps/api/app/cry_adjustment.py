"""Context-aware cry-cause adjustment.

Post-processes raw cry classifier probabilities with the caregiver's recent
logs (feeding, sleep), reminders and alerts. The classifier is never retrained
or called from here; this module is a pure function of its inputs and the
``now`` it is handed.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .alert_flags import extract_flags
from .config import DEFAULT_ADJUSTMENT_CONFIG, AdjustmentConfig
from .context_selection import select_feeding_context, select_sleep_context
from .finalizer import clamp, finalize
from .rule_ladder import LadderContext, LadderState, run_ladder
from .schemas import AdjustCryRequest, AdjustedOutput, BabyMaturity, CauseLabel
from .timestamps import coerce_timestamp

logger = logging.getLogger(__name__)

LABEL_ALIASES: Dict[str, CauseLabel] = {
    "hunger": CauseLabel.HUNGER,
    "hungry": CauseLabel.HUNGER,
    "belly_pain": CauseLabel.BELLY_PAIN,
    "bellypain": CauseLabel.BELLY_PAIN,
    "tired": CauseLabel.TIRED,
    "sleepy": CauseLabel.TIRED,
    "burping": CauseLabel.BURPING,
    "discomfort": CauseLabel.DISCOMFORT,
}

Timestamp = Union[datetime, int, float, str]


def canonical_label(key: Any) -> Optional[CauseLabel]:
    if not isinstance(key, str):
        return None
    return LABEL_ALIASES.get(key.strip().lower())


def canonicalize_scores(raw_scores: Optional[Mapping[str, Any]]) -> Dict[CauseLabel, float]:
    """Map classifier keys onto cause labels, dropping unknown keys and non-numbers.

    When two aliases of one label are both present the larger score is kept.
    """

    scores: Dict[CauseLabel, float] = {}
    if not isinstance(raw_scores, Mapping):
        return scores
    for key, value in raw_scores.items():
        label = canonical_label(key)
        if label is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not math.isfinite(value):
            continue
        scores[label] = max(scores.get(label, float("-inf")), float(value))
    return scores


def resolve_now(now: Optional[Timestamp]) -> int:
    resolved = coerce_timestamp(now)
    if resolved is None:
        resolved = coerce_timestamp(datetime.now(timezone.utc))
    return resolved


def adjust_cry_scores(
    raw_scores: Optional[Mapping[str, Any]],
    feeding_events: Optional[Iterable[Any]] = None,
    sleep_events: Optional[Iterable[Any]] = None,
    reminders: Optional[Iterable[Any]] = None,
    alerts: Optional[Iterable[Any]] = None,
    baby_maturity: Union[BabyMaturity, str, None] = BabyMaturity.FULL_TERM,
    now: Optional[Timestamp] = None,
    config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG,
) -> AdjustedOutput:
    """Correct raw cry probabilities with recent caregiving context.

    Returns the renormalized distribution over the five cause labels, the
    winning label with its score and the ordered explanation trail. Never
    raises for malformed events or scores; they are treated as absent data.
    Pass ``now`` explicitly for reproducible results.
    """

    now_ms = resolve_now(now)
    maturity = BabyMaturity.parse(baby_maturity)
    feeding_events = list(feeding_events or [])
    sleep_events = list(sleep_events or [])
    reminders = list(reminders or [])
    alerts = list(alerts or [])

    scores = canonicalize_scores(raw_scores)
    working = {label: clamp(value) for label, value in scores.items()}

    feeding = select_feeding_context(feeding_events, now_ms, config)
    sleep = select_sleep_context(sleep_events, now_ms, config)
    flags = extract_flags(alerts, reminders)

    logger.debug(
        "cry adjustment context",
        extra={
            "maturity": maturity.value,
            "feeding_recent": feeding.in_recent_window,
            "feeding_ts": feeding.timestamp,
            "feeding_amount": feeding.amount,
            "sleep_recent": sleep.in_recent_window,
            "sleep_ts": sleep.timestamp,
            "sleep_end": sleep.end_time,
            "alert_types": flags.alert_types,
        },
    )

    ctx = LadderContext(
        now_ms=now_ms,
        feeding=feeding,
        sleep=sleep,
        flags=flags,
        maturity=maturity,
        config=config,
    )
    state = run_ladder(LadderState.start(working), ctx)
    final = finalize(state, config)

    logger.info(
        "cry adjustment complete",
        extra={
            "final_label": final.final_label,
            "confidence": round(final.confidence, 4),
            "applied_rules": final.applied,
            "feeding_count": len(feeding_events),
            "sleep_count": len(sleep_events),
            "reminder_count": len(reminders),
            "alert_count": len(alerts),
        },
    )

    return AdjustedOutput(
        raw_scores={label.value: value for label, value in scores.items()},
        adjusted_scores={label.value: value for label, value in final.scores.items()},
        final_label=final.final_label,
        confidence=final.confidence,
        explanation=final.explanation,
        applied_rules=final.applied,
    )


def adjust_from_request(payload: AdjustCryRequest, *, config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG) -> AdjustedOutput:
    return adjust_cry_scores(
        payload.ai_scores,
        feeding_events=payload.feeding_logs,
        sleep_events=payload.sleep_logs,
        reminders=payload.reminders,
        alerts=payload.alerts,
        baby_maturity=payload.baby_type,
        now=payload.now,
        config=config,
    )
