"""Pydantic schemas shared across the API."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CauseLabel(str, Enum):
    HUNGER = "hunger"
    BELLY_PAIN = "belly_pain"
    TIRED = "tired"
    BURPING = "burping"
    DISCOMFORT = "discomfort"


# Canonical order doubles as the tie-break order for the final label.
CAUSE_LABELS = (
    CauseLabel.HUNGER,
    CauseLabel.BELLY_PAIN,
    CauseLabel.TIRED,
    CauseLabel.BURPING,
    CauseLabel.DISCOMFORT,
)

CAUSE_LABEL_DESCRIPTIONS = {
    CauseLabel.HUNGER: "Baby is likely hungry",
    CauseLabel.BELLY_PAIN: "Colic, gas or other tummy pain",
    CauseLabel.TIRED: "Overtired or ready to sleep",
    CauseLabel.BURPING: "Trapped air that needs a burp",
    CauseLabel.DISCOMFORT: "General discomfort (diaper, temperature, position)",
}

UNKNOWN_LABEL = "unknown"


class BabyMaturity(str, Enum):
    FULL_TERM = "full_term"
    PREMATURE = "premature"

    @classmethod
    def parse(cls, value: Any) -> "BabyMaturity":
        """Map loose caller input onto a maturity class, defaulting to full term."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if text in {"premature", "preterm", "pre_term"}:
            return cls.PREMATURE
        return cls.FULL_TERM


class AdjustCryRequest(BaseModel):
    ai_scores: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw classifier probabilities keyed by cause label (aliases allowed)",
    )
    feeding_logs: List[Dict[str, Any]] = Field(default_factory=list)
    sleep_logs: List[Dict[str, Any]] = Field(default_factory=list)
    reminders: List[Dict[str, Any]] = Field(default_factory=list)
    alerts: List[Dict[str, Any]] = Field(default_factory=list)
    baby_type: str = Field(default=BabyMaturity.FULL_TERM.value, description="full_term | premature")
    now: Optional[datetime] = Field(
        default=None,
        description="Reference time for the context windows; defaults to server time.",
    )


class AdjustedOutput(BaseModel):
    raw_scores: Dict[str, float] = Field(default_factory=dict)
    adjusted_scores: Dict[str, float] = Field(default_factory=dict)
    final_label: str = UNKNOWN_LABEL
    confidence: float = 0.0
    explanation: List[str] = Field(default_factory=list)
    applied_rules: List[str] = Field(
        default_factory=list,
        description="Identifiers of the adjustment steps that fired, in order",
    )


class CrySummary(BaseModel):
    final_label: str = UNKNOWN_LABEL
    confidence: float = 0.0
    adjusted_scores: Dict[str, float] = Field(default_factory=dict)
    explanation: List[str] = Field(default_factory=list)
    text: str = ""


class CryAnalysisMeta(BaseModel):
    processing_time_ms: int
    original_filename: str


class CryAnalysisResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any] = Field(default_factory=dict)
    raw_scores: Dict[str, float] = Field(default_factory=dict)
    meta: CryAnalysisMeta
