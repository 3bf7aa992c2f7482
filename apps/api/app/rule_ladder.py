"""Ordered heuristic rules that nudge cry-cause scores toward the logged context.

Each rule is a pure function ``(LadderState, LadderContext) -> LadderState``.
A rule that fires returns a new state with:

* one or more cause scores raised to a floor (never lowered),
* an increment to the belly-pain suppression budget (capped),
* one trace line and its rule id appended.

Rules run in the order of ``RULES``; later rules see the scores left by earlier
ones. The belly-pain budget is only spent later, by the finalizer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Callable, Dict, Mapping, Optional, Tuple

from .alert_flags import SignalFlags
from .config import DEFAULT_ADJUSTMENT_CONFIG, HOUR_MS, MINUTE_MS, AdjustmentConfig
from .context_selection import EMPTY_SELECTION, ContextSelection
from .schemas import CAUSE_LABELS, BabyMaturity, CauseLabel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LadderContext:
    now_ms: int
    feeding: ContextSelection = EMPTY_SELECTION
    sleep: ContextSelection = EMPTY_SELECTION
    flags: SignalFlags = field(default_factory=SignalFlags)
    maturity: BabyMaturity = BabyMaturity.FULL_TERM
    config: AdjustmentConfig = DEFAULT_ADJUSTMENT_CONFIG

    @property
    def since_feeding_ms(self) -> Optional[int]:
        return self.feeding.elapsed_since(self.now_ms)

    @property
    def since_sleep_start_ms(self) -> Optional[int]:
        return self.sleep.elapsed_since(self.now_ms)

    @property
    def since_wake_ms(self) -> Optional[int]:
        return self.sleep.elapsed_since_end(self.now_ms)


@dataclass(frozen=True)
class LadderState:
    scores: Mapping[CauseLabel, float]
    suppression: float = 0.0
    trace: Tuple[str, ...] = ()
    applied: Tuple[str, ...] = ()

    @classmethod
    def start(cls, scores: Mapping[CauseLabel, float]) -> "LadderState":
        return cls(scores={label: float(scores.get(label, 0.0)) for label in CAUSE_LABELS})

    def score(self, label: CauseLabel) -> float:
        return self.scores.get(label, 0.0)

    @property
    def fired(self) -> bool:
        return bool(self.applied)


Rule = Callable[[LadderState, LadderContext], LadderState]


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def _hours(ms: int) -> str:
    return f"{ms / HOUR_MS:.1f}h"


def _minutes(ms: int) -> str:
    return f"{round(ms / MINUTE_MS)}min"


def apply_floors(
    state: LadderState,
    *,
    rule_id: str,
    floors: Dict[CauseLabel, float],
    suppression: float,
    config: AdjustmentConfig,
    describe: Callable[[Mapping[CauseLabel, float]], str],
) -> LadderState:
    """Raise each label to at least its floor and record the step."""

    scores = dict(state.scores)
    for label, floor in floors.items():
        scores[label] = max(scores.get(label, 0.0), floor)
    budget = min(config.max_suppression, state.suppression + max(0.0, suppression))
    message = describe(scores)
    logger.debug(
        "cry rule fired",
        extra={"rule_id": rule_id, "suppression": budget, "trace_line": message},
    )
    return LadderState(
        scores=scores,
        suppression=budget,
        trace=state.trace + (message,),
        applied=state.applied + (rule_id,),
    )


def feeding_alert_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R1: a critical or low feeding alert means the baby is probably hungry."""
    flags = ctx.flags
    if not (flags.has_critical_feeding_alert or flags.has_low_feeding_alert):
        return state
    cfg = ctx.config
    kind = "Critical" if flags.has_critical_feeding_alert else "Low"
    return apply_floors(
        state,
        rule_id="R1",
        floors={CauseLabel.HUNGER: cfg.alert_hunger_floor},
        suppression=cfg.alert_suppression,
        config=cfg,
        describe=lambda s: (
            f"{kind} feeding alert active -> hunger raised to {_pct(s[CauseLabel.HUNGER])}, "
            f"belly_pain reduced {_pct(cfg.alert_suppression)}"
        ),
    )


def stale_feeding_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R2a: feeds are logged but none in the recent window."""
    if ctx.feeding.in_recent_window or not ctx.feeding.has_event:
        return state
    cfg = ctx.config
    return apply_floors(
        state,
        rule_id="R2a",
        floors={CauseLabel.HUNGER: cfg.stale_feeding_hunger_floor},
        suppression=cfg.stale_feeding_suppression,
        config=cfg,
        describe=lambda s: (
            f"No feeding in last {_hours(cfg.recent_window_ms)} -> "
            f"hunger boosted to {_pct(s[CauseLabel.HUNGER])}"
        ),
    )


def overdue_feeding_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R2b: the longer past the maturity-specific interval, the stronger the hunger floor."""
    since = ctx.since_feeding_ms
    cfg = ctx.config
    threshold = cfg.feeding_overdue_ms(ctx.maturity == BabyMaturity.PREMATURE)
    if since is None or since <= threshold:
        return state
    ratio = min(since / threshold, cfg.overdue_ratio_cap)
    floor = min(cfg.overdue_hunger_ceiling, cfg.overdue_hunger_base + cfg.overdue_hunger_step * ratio)
    return apply_floors(
        state,
        rule_id="R2b",
        floors={CauseLabel.HUNGER: floor},
        suppression=cfg.overdue_feeding_suppression,
        config=cfg,
        describe=lambda s: (
            f"No feeding for {_hours(since)} ({ctx.maturity.value.replace('_', '-')} interval "
            f"{_hours(threshold)}) -> hunger boosted to {_pct(s[CauseLabel.HUNGER])}"
        ),
    )


def large_recent_feeding_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R3: a big feed shortly before the cry points to trapped air."""
    cfg = ctx.config
    feeding = ctx.feeding
    since = ctx.since_feeding_ms
    if not feeding.in_recent_window or since is None:
        return state
    if not cfg.burping_window_min_ms <= since <= cfg.burping_window_max_ms:
        return state
    amount = feeding.amount or 0.0
    if amount < cfg.large_feeding_ml:
        return state
    return apply_floors(
        state,
        rule_id="R3",
        floors={CauseLabel.BURPING: cfg.large_feeding_burping_floor},
        suppression=cfg.large_feeding_suppression,
        config=cfg,
        describe=lambda s: (
            f"Fed {amount:g}ml {_minutes(since)} ago -> "
            f"burping boosted to {_pct(s[CauseLabel.BURPING])}"
        ),
    )


def frequent_feeding_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R4: frequent feeds tend to bring gas and fussiness."""
    if not ctx.flags.has_frequent_feeding_alert:
        return state
    cfg = ctx.config
    return apply_floors(
        state,
        rule_id="R4",
        floors={
            CauseLabel.BURPING: cfg.frequent_feeding_burping_floor,
            CauseLabel.DISCOMFORT: cfg.frequent_feeding_discomfort_floor,
        },
        suppression=cfg.frequent_feeding_suppression,
        config=cfg,
        describe=lambda s: (
            f"Frequent feeding alert active -> burping boosted to {_pct(s[CauseLabel.BURPING])}, "
            f"discomfort to {_pct(s[CauseLabel.DISCOMFORT])}"
        ),
    )


def stale_sleep_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    if ctx.sleep.in_recent_window or not ctx.sleep.has_event:
        return state
    cfg = ctx.config
    return apply_floors(
        state,
        rule_id="R5a",
        floors={CauseLabel.TIRED: cfg.stale_sleep_tired_floor},
        suppression=cfg.stale_sleep_suppression,
        config=cfg,
        describe=lambda s: (
            f"No sleep in last {_hours(cfg.recent_window_ms)} -> "
            f"tired boosted to {_pct(s[CauseLabel.TIRED])}"
        ),
    )


def overdue_sleep_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    since = ctx.since_sleep_start_ms
    cfg = ctx.config
    if since is None or since <= cfg.sleep_overdue_ms:
        return state
    return apply_floors(
        state,
        rule_id="R5b",
        floors={CauseLabel.TIRED: cfg.sleep_overdue_tired_floor},
        suppression=cfg.sleep_overdue_suppression,
        config=cfg,
        describe=lambda s: f"No sleep for {_hours(since)} -> tired boosted to {_pct(s[CauseLabel.TIRED])}",
    )


def woke_recently_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R6: just-woken babies are often unsettled. Sleep still in progress does not count."""
    since = ctx.since_wake_ms
    cfg = ctx.config
    if since is None or not 0 < since <= cfg.woke_recently_ms:
        return state
    return apply_floors(
        state,
        rule_id="R6",
        floors={CauseLabel.DISCOMFORT: cfg.woke_recently_discomfort_floor},
        suppression=cfg.woke_recently_suppression,
        config=cfg,
        describe=lambda s: (
            f"Woke up {_minutes(since)} ago -> discomfort boosted to {_pct(s[CauseLabel.DISCOMFORT])}"
        ),
    )


def long_awake_rule(state: LadderState, ctx: LadderContext) -> LadderState:
    """R7: very long wake stretches leave the baby overtired."""
    since = ctx.since_wake_ms
    cfg = ctx.config
    if since is None or since <= 0 or since <= cfg.long_awake_ms:
        return state
    return apply_floors(
        state,
        rule_id="R7",
        floors={
            CauseLabel.TIRED: cfg.long_awake_tired_floor,
            CauseLabel.DISCOMFORT: cfg.long_awake_discomfort_floor,
        },
        suppression=cfg.long_awake_suppression,
        config=cfg,
        describe=lambda s: (
            f"Awake {_hours(since)} -> tired boosted to {_pct(s[CauseLabel.TIRED])}, "
            f"discomfort to {_pct(s[CauseLabel.DISCOMFORT])}"
        ),
    )


RULES: Tuple[Tuple[str, Rule], ...] = (
    ("R1", feeding_alert_rule),
    ("R2a", stale_feeding_rule),
    ("R2b", overdue_feeding_rule),
    ("R3", large_recent_feeding_rule),
    ("R4", frequent_feeding_rule),
    ("R5a", stale_sleep_rule),
    ("R5b", overdue_sleep_rule),
    ("R6", woke_recently_rule),
    ("R7", long_awake_rule),
)


def run_ladder(
    state: LadderState,
    ctx: LadderContext,
    rules: Tuple[Tuple[str, Rule], ...] = RULES,
) -> LadderState:
    return reduce(lambda acc, entry: entry[1](acc, ctx), rules, state)
