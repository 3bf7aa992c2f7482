"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


class AdjustmentConfig(BaseModel):
    """Every window, threshold and weight used by the cry adjustment engine."""

    model_config = ConfigDict(frozen=True)

    # Context windows
    recent_window_ms: int = 2 * HOUR_MS
    extended_window_ms: int = 6 * HOUR_MS

    # Feeding
    feeding_overdue_full_term_ms: int = 3 * HOUR_MS
    feeding_overdue_premature_ms: int = int(2.5 * HOUR_MS)
    burping_window_min_ms: int = 5 * MINUTE_MS
    burping_window_max_ms: int = 45 * MINUTE_MS
    large_feeding_ml: float = 60.0

    # Sleep
    sleep_overdue_ms: int = 3 * HOUR_MS
    woke_recently_ms: int = 45 * MINUTE_MS
    long_awake_ms: int = 10 * HOUR_MS

    # Score floors
    alert_hunger_floor: float = 0.70
    stale_feeding_hunger_floor: float = 0.55
    overdue_hunger_base: float = 0.40
    overdue_hunger_step: float = 0.15
    overdue_ratio_cap: float = 3.0
    overdue_hunger_ceiling: float = 0.80
    large_feeding_burping_floor: float = 0.45
    frequent_feeding_burping_floor: float = 0.35
    frequent_feeding_discomfort_floor: float = 0.25
    stale_sleep_tired_floor: float = 0.45
    sleep_overdue_tired_floor: float = 0.50
    woke_recently_discomfort_floor: float = 0.30
    long_awake_tired_floor: float = 0.55
    long_awake_discomfort_floor: float = 0.40

    # Belly pain suppression budget increments
    alert_suppression: float = 0.50
    stale_feeding_suppression: float = 0.35
    overdue_feeding_suppression: float = 0.40
    large_feeding_suppression: float = 0.35
    frequent_feeding_suppression: float = 0.30
    stale_sleep_suppression: float = 0.25
    sleep_overdue_suppression: float = 0.30
    woke_recently_suppression: float = 0.20
    long_awake_suppression: float = 0.40

    max_suppression: float = 0.80
    belly_pain_cap_trigger: float = 0.40
    belly_pain_cap_value: float = 0.35

    default_explanation: str = "No contextual adjustments applied - using raw AI scores"

    def feeding_overdue_ms(self, premature: bool) -> int:
        if premature:
            return self.feeding_overdue_premature_ms
        return self.feeding_overdue_full_term_ms


DEFAULT_ADJUSTMENT_CONFIG = AdjustmentConfig()


class AppConfig(BaseModel):
    """Strongly typed service configuration, optionally loaded from config.json."""

    model_config = ConfigDict(frozen=True)

    classifier_url: str = Field(default="http://127.0.0.1:5000/analyze-cry")
    classifier_timeout_seconds: float = Field(default=30.0, gt=0)
    health_timeout_seconds: float = Field(default=5.0, gt=0)
    max_audio_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )
    adjustment: AdjustmentConfig = Field(default_factory=AdjustmentConfig)

    @property
    def classifier_health_url(self) -> str:
        """Health endpoint that sits beside the analyze endpoint."""
        if self.classifier_url.endswith("/analyze-cry"):
            return self.classifier_url[: -len("/analyze-cry")] + "/health"
        return self.classifier_url.rstrip("/") + "/health"


def _config_path() -> Path:
    override = os.getenv("CRY_CONTEXT_CONFIG")
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[1] / "config.json"


def load_config() -> AppConfig:
    """Load configuration from config.json (if present) plus environment overrides."""

    contents: Dict[str, Any] = {}
    config_file = _config_path()
    if config_file.exists():
        contents = json.loads(config_file.read_text())

    classifier_url = os.getenv("CLASSIFIER_URL")
    if classifier_url:
        contents["classifier_url"] = classifier_url
    timeout = os.getenv("CLASSIFIER_TIMEOUT_SECONDS")
    if timeout:
        contents["classifier_timeout_seconds"] = float(timeout)
    return AppConfig(**contents)


CONFIG = load_config()
