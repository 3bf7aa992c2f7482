"""HTTP client for the external cry classification service."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from .config import CONFIG, AppConfig
from .cry_adjustment import canonical_label

logger = logging.getLogger(__name__)


class ClassifierError(Exception):
    """Base error for classifier calls."""

    status_code = 502


class ClassifierUnavailableError(ClassifierError):
    status_code = 503


class ClassifierTimeoutError(ClassifierError):
    status_code = 504


class ClassifierResponseError(ClassifierError):
    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"Classifier returned status={status_code}")
        self.status_code = status_code
        self.detail = detail


def _describe_response(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text or "<empty response>"


def extract_raw_scores(payload: Mapping[str, Any]) -> Dict[str, float]:
    """Pull cause probabilities out of a classifier response.

    The service answers either flat (``{"hungry": 0.8, "top_reason": ...}``) or
    with a nested ``probabilities`` object; only keys that map to a cause label
    are kept.
    """

    source: Mapping[str, Any] = payload
    nested = payload.get("probabilities")
    if isinstance(nested, Mapping):
        source = nested
    scores: Dict[str, float] = {}
    for key, value in source.items():
        if canonical_label(key) is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            continue
        scores[key] = float(value)
    return scores


@dataclass
class ClassifierClient:
    analyze_url: str
    health_url: str
    timeout: float = 30.0
    health_timeout: float = 5.0
    transport: Optional[httpx.AsyncBaseTransport] = None

    @classmethod
    def from_config(cls, config: AppConfig = CONFIG) -> "ClassifierClient":
        return cls(
            analyze_url=config.classifier_url,
            health_url=config.classifier_health_url,
            timeout=config.classifier_timeout_seconds,
            health_timeout=config.health_timeout_seconds,
        )

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def analyze(self, audio: bytes, *, filename: str, content_type: str) -> Dict[str, Any]:
        """Forward one recording as multipart field ``audio`` and return the JSON body."""
        try:
            async with self._client(self.timeout) as client:
                resp = await client.post(
                    self.analyze_url,
                    files={"audio": (filename, audio, content_type)},
                )
        except httpx.TimeoutException as exc:
            raise ClassifierTimeoutError(f"Classifier timed out after {self.timeout:g}s") from exc
        except httpx.TransportError as exc:
            raise ClassifierUnavailableError(f"Classifier unavailable at {self.analyze_url}") from exc

        if resp.status_code >= 400:
            raise ClassifierResponseError(resp.status_code, _describe_response(resp))
        data = _describe_response(resp)
        if not isinstance(data, dict):
            raise ClassifierResponseError(502, {"message": "Classifier returned a non-object body", "body": data})
        return data

    async def health(self) -> Any:
        try:
            async with self._client(self.health_timeout) as client:
                resp = await client.get(self.health_url)
        except httpx.TimeoutException as exc:
            raise ClassifierTimeoutError(f"Classifier health check timed out after {self.health_timeout:g}s") from exc
        except httpx.TransportError as exc:
            raise ClassifierUnavailableError(f"Classifier unavailable at {self.health_url}") from exc
        if resp.status_code >= 400:
            raise ClassifierResponseError(resp.status_code, _describe_response(resp))
        return _describe_response(resp)
