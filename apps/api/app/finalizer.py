"""Turn the rule ladder's working scores into a probability distribution and label."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

from .config import DEFAULT_ADJUSTMENT_CONFIG, AdjustmentConfig
from .rule_ladder import LadderState
from .schemas import CAUSE_LABELS, UNKNOWN_LABEL, CauseLabel

logger = logging.getLogger(__name__)

CAP_RULE_ID = "CAP"


@dataclass(frozen=True)
class FinalScores:
    scores: Dict[CauseLabel, float]
    final_label: str
    confidence: float
    explanation: List[str]
    applied: List[str]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def normalize(scores: Mapping[CauseLabel, float]) -> Dict[CauseLabel, float]:
    """Scale scores to sum to 1; an all-zero map is returned unchanged."""
    total = sum(scores.values())
    if total == 0:
        return dict(scores)
    return {label: value / total for label, value in scores.items()}


def pick_label(scores: Mapping[CauseLabel, float]) -> Tuple[str, float]:
    """Strictly highest score wins; ties go to the earlier canonical label."""
    final_label = UNKNOWN_LABEL
    highest = 0.0
    for label in CAUSE_LABELS:
        score = scores.get(label, 0.0)
        if score > highest:
            highest = score
            final_label = label.value
    return final_label, highest


def suppress_belly_pain(state: LadderState, config: AdjustmentConfig) -> LadderState:
    budget = min(max(state.suppression, 0.0), config.max_suppression)
    if budget <= 0:
        return state
    scores = dict(state.scores)
    before = scores.get(CauseLabel.BELLY_PAIN, 0.0)
    scores[CauseLabel.BELLY_PAIN] = before * (1 - budget)
    logger.debug(
        "belly pain suppressed",
        extra={"before": before, "after": scores[CauseLabel.BELLY_PAIN], "budget": budget},
    )
    return LadderState(scores=scores, suppression=budget, trace=state.trace, applied=state.applied)


def cap_belly_pain(state: LadderState, config: AdjustmentConfig) -> LadderState:
    """Context outweighs a lingering belly-pain peak once any rule has fired."""
    belly_pain = state.score(CauseLabel.BELLY_PAIN)
    if not state.fired or belly_pain <= config.belly_pain_cap_trigger:
        return state
    scores = dict(state.scores)
    scores[CauseLabel.BELLY_PAIN] = config.belly_pain_cap_value
    message = (
        f"Context-aware cap: belly_pain limited to {config.belly_pain_cap_value * 100:.0f}% "
        f"(was {belly_pain * 100:.0f}%)"
    )
    return LadderState(
        scores=scores,
        suppression=state.suppression,
        trace=state.trace + (message,),
        applied=state.applied + (CAP_RULE_ID,),
    )


def finalize(state: LadderState, config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG) -> FinalScores:
    fired = state.fired
    state = suppress_belly_pain(state, config)
    state = cap_belly_pain(state, config)

    clamped = {label: clamp(state.score(label)) for label in CAUSE_LABELS}
    scores = normalize(clamped)
    final_label, confidence = pick_label(scores)

    explanation = list(state.trace)
    if not fired:
        explanation = [config.default_explanation]

    return FinalScores(
        scores=scores,
        final_label=final_label,
        confidence=confidence,
        explanation=explanation,
        applied=list(state.applied),
    )
