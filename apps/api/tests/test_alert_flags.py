from __future__ import annotations

import pytest

from app.alert_flags import SignalFlags, category_text, classify_record, extract_flags


@pytest.mark.parametrize(
    "alert, expected",
    [
        ({"type": "critical_feeding_delay", "severity": "high"}, ["CRITICAL_FEEDING"]),
        ({"type": "feeding", "severity": "HIGH", "title": "Feeding delay"}, ["CRITICAL_FEEDING"]),
        ({"type": "feeding", "severity": "medium", "title": "Frequent feeding"}, ["FREQUENT_FEEDING"]),
        ({"type": "feeding", "title": "Low daily intake"}, ["CRITICAL_FEEDING", "LOW_FEEDING"]),
        ({"type": "sleep", "title": "Short sleep"}, ["SLEEP"]),
        ({"type": "weight", "severity": "high", "title": "Weight loss"}, []),
        ({"title": "Baby seems tired and hungry", "severity": "high"}, ["CRITICAL_FEEDING", "SLEEP"]),
    ],
)
def test_classify_record(alert: dict, expected: list) -> None:
    assert classify_record(alert) == expected


def test_category_text_joins_all_category_fields() -> None:
    text = category_text({"type": "Feeding", "ruleId": "FEED_FREQ", "title": None})
    assert text == "feeding feed_freq"


def test_extract_flags_from_empty_inputs() -> None:
    assert extract_flags([]) == SignalFlags()
    assert extract_flags(None, None) == SignalFlags()


def test_extract_flags_combines_alerts_without_duplicates() -> None:
    flags = extract_flags(
        [
            {"type": "critical_feeding", "severity": "high", "status": "active"},
            {"type": "feeding_delay", "severity": "high"},
            {"type": "feeding", "title": "Frequent feeding", "severity": "medium"},
            {"type": "sleep"},
        ]
    )
    assert flags.has_critical_feeding_alert is True
    assert flags.has_frequent_feeding_alert is True
    assert flags.has_low_feeding_alert is False
    assert flags.has_sleep_alert is True
    assert flags.alert_types == ["CRITICAL_FEEDING", "FREQUENT_FEEDING", "SLEEP"]


def test_closed_alerts_are_ignored() -> None:
    flags = extract_flags([{"type": "critical_feeding", "severity": "high", "status": "resolved"}])
    assert flags == SignalFlags()


def test_only_pending_or_sent_reminders_count() -> None:
    reminders = [
        {"type": "low_feeding_check", "status": "completed"},
        {"type": "sleep", "status": "pending"},
    ]
    flags = extract_flags([], reminders)
    assert flags.has_low_feeding_alert is False
    assert flags.has_sleep_alert is True
    assert flags.alert_types == ["SLEEP"]


def test_resolved_rule_engine_alert_is_ignored() -> None:
    resolved = {
        "ruleId": "feeding_delay",
        "title": "Feeding Delay Alert",
        "severity": "HIGH",
        "isActive": False,
        "resolved": True,
    }
    assert extract_flags([resolved]) == SignalFlags()
    assert extract_flags([{**resolved, "isActive": True, "resolved": False}]).has_critical_feeding_alert is True


def test_rule_engine_reminders_use_is_active() -> None:
    active = {"type": "feeding", "ruleId": "feeding_delay_reminder", "isActive": True}
    flags = extract_flags([], [active])
    assert flags.has_critical_feeding_alert is True
    assert flags.alert_types == ["CRITICAL_FEEDING"]

    assert extract_flags([], [{**active, "isActive": False}]) == SignalFlags()
    assert extract_flags([], [{"type": "sleep"}]) == SignalFlags()
