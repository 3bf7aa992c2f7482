from __future__ import annotations

from typing import Any, List, Mapping, Optional

from .schemas import UNKNOWN_LABEL, CrySummary


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def summarize_cry_analysis(result: Optional[Mapping[str, Any]]) -> Optional[CrySummary]:
    """Flatten a stored or fresh adjustment result into the chatbot context block.

    Accepts both the adjusted shape (``adjusted_scores``/``final_label``) and the
    older flat classifier shape (``scores``/``label``).
    """

    if not result:
        return None
    scores = result.get("adjusted_scores") or result.get("scores") or {}
    if not isinstance(scores, Mapping):
        scores = {}
    explanation: List[str] = [str(item) for item in result.get("explanation") or []]
    summary = CrySummary(
        final_label=str(result.get("final_label") or result.get("label") or UNKNOWN_LABEL),
        confidence=_as_float(result.get("confidence")),
        adjusted_scores={str(key): _as_float(value) for key, value in scores.items()},
        explanation=explanation,
    )
    return summary.model_copy(update={"text": format_cry_context_text(summary)})


def format_cry_context_text(summary: CrySummary) -> str:
    lines = [
        "Latest cry analysis:",
        f"- Pattern: {summary.final_label} (confidence: {summary.confidence * 100:.0f}%)",
    ]
    if summary.explanation:
        lines.append(f"- Factors: {', '.join(summary.explanation)}")
    return "\n".join(lines) + "\n"
