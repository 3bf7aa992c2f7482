from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..classifier_client import (
    ClassifierClient,
    ClassifierError,
    ClassifierResponseError,
    extract_raw_scores,
)
from ..config import CONFIG
from ..cry_adjustment import adjust_from_request
from ..cry_summary import summarize_cry_analysis
from ..schemas import (
    AdjustCryRequest,
    AdjustedOutput,
    CryAnalysisMeta,
    CryAnalysisResponse,
    CrySummary,
)

router = APIRouter(prefix="/api/v1/cry-analysis", tags=["cry-analysis"])
logger = logging.getLogger(__name__)

ALLOWED_AUDIO_TYPES = {"audio/wav", "audio/wave", "audio/x-wav", "audio/mpeg", "audio/mp3"}
ALLOWED_AUDIO_EXTENSIONS = {".wav", ".mp3"}


def get_classifier_client() -> ClassifierClient:
    return ClassifierClient.from_config(CONFIG)


def _is_allowed_audio(content_type: Optional[str], filename: str) -> bool:
    mime = (content_type or "").split(";")[0].strip().lower()
    ext = PurePath(filename).suffix.lower()
    return mime in ALLOWED_AUDIO_TYPES or ext in ALLOWED_AUDIO_EXTENSIONS


def _too_large(limit: int) -> HTTPException:
    return HTTPException(
        status_code=413,
        detail=f"Audio file is too large. Maximum size is {limit // (1024 * 1024)}MB.",
    )


async def _read_audio(request: Request, limit: int) -> bytes:
    """Read the upload in chunks, stopping as soon as it exceeds ``limit`` bytes."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise _too_large(limit)
    audio = bytearray()
    async for chunk in request.stream():
        audio.extend(chunk)
        if len(audio) > limit:
            raise _too_large(limit)
    return bytes(audio)


@router.post("/adjust", response_model=AdjustedOutput)
async def adjust_cry_endpoint(payload: AdjustCryRequest) -> AdjustedOutput:
    """Re-weight raw classifier scores with the supplied caregiving snapshot."""

    if payload.now is None:
        payload = payload.model_copy(update={"now": datetime.now(timezone.utc)})
    logger.info(
        "cry adjust request",
        extra={
            "method": "POST",
            "path": "/api/v1/cry-analysis/adjust",
            "baby_type": payload.baby_type,
            "feeding_count": len(payload.feeding_logs),
            "sleep_count": len(payload.sleep_logs),
            "alert_count": len(payload.alerts),
        },
    )
    return adjust_from_request(payload, config=CONFIG.adjustment)


@router.post("/summary", response_model=CrySummary)
async def summarize_cry_endpoint(payload: Dict[str, Any]) -> CrySummary:
    summary = summarize_cry_analysis(payload)
    if summary is None:
        raise HTTPException(status_code=400, detail="cry analysis result is required")
    return summary


@router.post("", response_model=CryAnalysisResponse)
async def analyze_cry_endpoint(
    request: Request,
    filename: str = Query("cry.wav", description="Original recording filename"),
    content_type: Optional[str] = Header(None),
    classifier: ClassifierClient = Depends(get_classifier_client),
) -> CryAnalysisResponse:
    """Forward a raw recording to the classifier and return its probabilities."""

    request_id = f"cry-{uuid4().hex[:12]}"
    started = time.monotonic()
    logger.info("cry analysis request received", extra={"request_id": request_id, "audio_name": filename})

    if not _is_allowed_audio(content_type, filename):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only .wav and .mp3 audio files are allowed.",
        )
    audio = await _read_audio(request, CONFIG.max_audio_bytes)
    if not audio:
        raise HTTPException(
            status_code=400,
            detail="No audio provided. Please upload a .wav or .mp3 file.",
        )

    mime = (content_type or "audio/wav").split(";")[0].strip()
    try:
        data = await classifier.analyze(audio, filename=filename, content_type=mime)
    except ClassifierResponseError as exc:
        logger.warning(
            "classifier error response",
            extra={"request_id": request_id, "status_code": exc.status_code},
        )
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    except ClassifierError as exc:
        logger.warning("classifier call failed", extra={"request_id": request_id, "error": str(exc)})
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    duration_ms = int((time.monotonic() - started) * 1000)
    raw_scores = extract_raw_scores(data)
    logger.info(
        "cry analysis completed",
        extra={"request_id": request_id, "duration_ms": duration_ms, "labels": sorted(raw_scores)},
    )
    return CryAnalysisResponse(
        data=data,
        raw_scores=raw_scores,
        meta=CryAnalysisMeta(processing_time_ms=duration_ms, original_filename=filename),
    )


@router.get("/health")
async def classifier_health_endpoint(
    classifier: ClassifierClient = Depends(get_classifier_client),
) -> JSONResponse:
    try:
        health = await classifier.health()
    except ClassifierError as exc:
        logger.warning("classifier health check failed", extra={"error": str(exc)})
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "service": "cry-analysis",
                "classifier_status": "disconnected",
                "error": str(exc),
            },
        )
    return JSONResponse(
        content={
            "success": True,
            "service": "cry-analysis",
            "classifier_status": "connected",
            "classifier_health": health,
        }
    )
