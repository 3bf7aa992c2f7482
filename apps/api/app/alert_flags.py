"""Reduce active alerts and reminders to the flags the rule ladder reads."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

CATEGORY_FIELDS = ("type", "category", "ruleId", "rule_id", "title")

FEEDING_TERMS = ("feed", "fed", "hunger", "hungry")
CRITICAL_FEEDING_TERMS = ("critical", "low", "delay")
SLEEP_TERMS = ("sleep", "tired")

CLOSED_ALERT_STATUSES = {"resolved", "dismissed", "inactive", "acknowledged"}
ACTIVE_REMINDER_STATUSES = {"pending", "sent"}

CRITICAL_FEEDING = "CRITICAL_FEEDING"
FREQUENT_FEEDING = "FREQUENT_FEEDING"
LOW_FEEDING = "LOW_FEEDING"
SLEEP = "SLEEP"


@dataclass(frozen=True)
class SignalFlags:
    has_critical_feeding_alert: bool = False
    has_low_feeding_alert: bool = False
    has_frequent_feeding_alert: bool = False
    has_sleep_alert: bool = False
    alert_types: List[str] = field(default_factory=list)


def _text(record: Mapping[str, Any], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    return str(value).strip().lower()


def category_text(record: Mapping[str, Any]) -> str:
    """Every category-like field of the record, lowercased and joined."""
    parts = [_text(record, key) for key in CATEGORY_FIELDS]
    return " ".join(part for part in parts if part)


def _mentions(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


def _is_active_alert(alert: Mapping[str, Any]) -> bool:
    if alert.get("isActive") is False or alert.get("resolved") is True:
        return False
    return _text(alert, "status") not in CLOSED_ALERT_STATUSES


def _is_active_reminder(reminder: Mapping[str, Any]) -> bool:
    # Rule-engine reminders carry only an isActive flag, no status.
    status = _text(reminder, "status")
    if not status:
        return reminder.get("isActive") is True
    return status in ACTIVE_REMINDER_STATUSES


def classify_record(record: Mapping[str, Any]) -> List[str]:
    """Flag names raised by a single alert/reminder, in a fixed order."""

    text = category_text(record)
    severity = _text(record, "severity")
    raised: List[str] = []
    if _mentions(text, FEEDING_TERMS):
        if _mentions(text, CRITICAL_FEEDING_TERMS) or severity == "high":
            raised.append(CRITICAL_FEEDING)
        if "frequent" in text:
            raised.append(FREQUENT_FEEDING)
        if "low" in text:
            raised.append(LOW_FEEDING)
    if _mentions(text, SLEEP_TERMS):
        raised.append(SLEEP)
    return raised


def extract_flags(
    alerts: Optional[Iterable[Any]],
    reminders: Optional[Iterable[Any]] = None,
) -> SignalFlags:
    records: List[Mapping[str, Any]] = []
    for alert in alerts or []:
        if isinstance(alert, Mapping) and _is_active_alert(alert):
            records.append(alert)
    for reminder in reminders or []:
        if isinstance(reminder, Mapping) and _is_active_reminder(reminder):
            records.append(reminder)

    alert_types: List[str] = []
    for record in records:
        for name in classify_record(record):
            if name not in alert_types:
                alert_types.append(name)

    return SignalFlags(
        has_critical_feeding_alert=CRITICAL_FEEDING in alert_types,
        has_low_feeding_alert=LOW_FEEDING in alert_types,
        has_frequent_feeding_alert=FREQUENT_FEEDING in alert_types,
        has_sleep_alert=SLEEP in alert_types,
        alert_types=alert_types,
    )
