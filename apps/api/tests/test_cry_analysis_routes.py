from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from app.classifier_client import ClassifierClient
from app.config import AppConfig
from app.main import app
from app.routes import cry_analysis as cry_analysis_routes
from app.routes.cry_analysis import get_classifier_client

client = TestClient(app)

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def use_classifier(handler) -> None:
    fake = ClassifierClient(
        analyze_url="http://classifier.test/analyze-cry",
        health_url="http://classifier.test/health",
        transport=httpx.MockTransport(handler),
    )
    app.dependency_overrides[get_classifier_client] = lambda: fake


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    app.dependency_overrides.clear()


def test_health() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_adjust_endpoint_runs_engine() -> None:
    resp = client.post(
        "/api/v1/cry-analysis/adjust",
        json={
            "ai_scores": {"belly_pain": 0.55, "discomfort": 0.25, "tired": 0.10, "burping": 0.05, "hungry": 0.05},
            "feeding_logs": [{"type": "feeding", "quantity": 80, "timestamp": (NOW - timedelta(minutes=20)).isoformat()}],
            "sleep_logs": [],
            "reminders": [],
            "alerts": [],
            "baby_type": "full_term",
            "now": NOW.isoformat(),
        },
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["final_label"] == "burping"
    assert payload["applied_rules"] == ["R3"]
    assert payload["raw_scores"]["hunger"] == 0.05
    assert abs(sum(payload["adjusted_scores"].values()) - 1) < 1e-9


def test_adjust_endpoint_defaults_to_server_time() -> None:
    resp = client.post(
        "/api/v1/cry-analysis/adjust",
        json={"ai_scores": {"tired": 0.7, "hunger": 0.3}, "alerts": [{"type": "low_feeding", "severity": "high"}]},
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["applied_rules"] == ["R1"]
    assert payload["final_label"] == "hunger"


def test_adjust_endpoint_rejects_bad_shapes() -> None:
    resp = client.post("/api/v1/cry-analysis/adjust", json={"feeding_logs": "yesterday"})
    assert resp.status_code == 422


def test_summary_endpoint() -> None:
    resp = client.post(
        "/api/v1/cry-analysis/summary",
        json={"final_label": "tired", "confidence": 0.5, "adjusted_scores": {"tired": 0.5}, "explanation": []},
    )
    assert resp.status_code == 200
    assert resp.json()["text"].startswith("Latest cry analysis:\n- Pattern: tired (confidence: 50%)")

    empty = client.post("/api/v1/cry-analysis/summary", json={})
    assert empty.status_code == 400


def test_analyze_forwards_audio_to_classifier() -> None:
    use_classifier(lambda request: httpx.Response(200, json={"hungry": 0.8, "tired": 0.2, "top_reason": "hungry"}))
    resp = client.post(
        "/api/v1/cry-analysis",
        params={"filename": "night.wav"},
        content=b"RIFF....WAVE",
        headers={"Content-Type": "audio/wav"},
    )
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["success"] is True
    assert payload["data"]["top_reason"] == "hungry"
    assert payload["raw_scores"] == {"hungry": 0.8, "tired": 0.2}
    assert payload["meta"]["original_filename"] == "night.wav"


@pytest.mark.parametrize(
    "content, headers, params, status",
    [
        (b"", {"Content-Type": "audio/wav"}, {}, 400),
        (b"data", {"Content-Type": "text/plain"}, {"filename": "notes.txt"}, 400),
        (b"x" * (10 * 1024 * 1024 + 1), {"Content-Type": "audio/mpeg"}, {"filename": "cry.mp3"}, 413),
    ],
)
def test_analyze_validates_upload(content: bytes, headers: dict, params: dict, status: int) -> None:
    use_classifier(lambda request: httpx.Response(200, json={}))
    resp = client.post("/api/v1/cry-analysis", content=content, headers=headers, params=params)
    assert resp.status_code == status


def test_analyze_rejects_oversized_upload_before_reading(monkeypatch) -> None:
    monkeypatch.setattr(cry_analysis_routes, "CONFIG", AppConfig(max_audio_bytes=16))
    calls = []
    use_classifier(lambda request: calls.append(request) or httpx.Response(200, json={}))

    declared = client.post("/api/v1/cry-analysis", content=b"x" * 17, headers={"Content-Type": "audio/wav"})
    assert declared.status_code == 413

    def chunks():
        for _ in range(4):
            yield b"x" * 8

    streamed = client.post("/api/v1/cry-analysis", content=chunks(), headers={"Content-Type": "audio/wav"})
    assert streamed.status_code == 413
    assert calls == []

    within = client.post("/api/v1/cry-analysis", content=b"x" * 16, headers={"Content-Type": "audio/wav"})
    assert within.status_code == 200
    assert len(calls) == 1


def test_analyze_maps_classifier_failures() -> None:
    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    use_classifier(refused)
    resp = client.post("/api/v1/cry-analysis", content=b"RIFF", headers={"Content-Type": "audio/wav"})
    assert resp.status_code == 503

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    use_classifier(slow)
    resp = client.post("/api/v1/cry-analysis", content=b"RIFF", headers={"Content-Type": "audio/wav"})
    assert resp.status_code == 504

    use_classifier(lambda request: httpx.Response(400, json={"message": "clip too short"}))
    resp = client.post("/api/v1/cry-analysis", content=b"RIFF", headers={"Content-Type": "audio/wav"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == {"message": "clip too short"}


def test_classifier_health_endpoint() -> None:
    use_classifier(lambda request: httpx.Response(200, json={"status": "ok"}))
    resp = client.get("/api/v1/cry-analysis/health")
    assert resp.status_code == 200
    assert resp.json()["classifier_status"] == "connected"
    assert resp.json()["classifier_health"] == {"status": "ok"}

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    use_classifier(refused)
    resp = client.get("/api/v1/cry-analysis/health")
    assert resp.status_code == 503
    assert resp.json()["classifier_status"] == "disconnected"
