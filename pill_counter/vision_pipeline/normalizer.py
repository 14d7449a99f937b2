"""Builds the final CountResult for either detector path."""

import logging
import math
from typing import Any, Dict, List, Sequence, Tuple

from pill_counter.schemas import ConfidenceTier, CountResult, PillPosition
from .base import RawDetection
from .classifier import Strategy

logger = logging.getLogger(__name__)

FALLBACK_NOTES_PREFIX = "Counted via AI (Vision API found no objects): "

# Used when a coordinate is missing or not a number.
DEFAULT_COORDINATE = 50.0


def clamp_percent(value: float) -> float:
    return min(100.0, max(0.0, value))


def centroid(region: Sequence[Tuple[float, float]]) -> PillPosition:
    """Mean of the polygon's vertices, as clamped 0-100 percentages."""
    if not region:
        return PillPosition(x=DEFAULT_COORDINATE, y=DEFAULT_COORDINATE)
    cx = sum(x for x, _ in region) / len(region) * 100
    cy = sum(y for _, y in region) / len(region) * 100
    return PillPosition(x=clamp_percent(cx), y=clamp_percent(cy))


def confidence_tier(avg_score: float) -> ConfidenceTier:
    if avg_score > 0.8:
        return ConfidenceTier.HIGH
    if avg_score > 0.5:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def degraded_result(notes: str = "No pills detected") -> CountResult:
    return CountResult(count=0, confidence=ConfidenceTier.LOW, notes=notes, pills=[])


def build_detection_result(detections: List[RawDetection], strategy: Strategy) -> CountResult:
    pills = [centroid(d.region) for d in detections]

    if strategy is Strategy.PILLS:
        avg_score = sum(d.score for d in detections) / len(detections) if detections else 0.0
        confidence = confidence_tier(avg_score)
        described = ", ".join(f"{d.label}({d.score * 100:.0f}%)" for d in detections)
        notes = f"Detected {len(detections)} objects via Vision API. Objects: {described}"
    else:
        # Nothing looked like a pill; report everything seen.
        confidence = ConfidenceTier.MEDIUM
        described = ", ".join(d.label for d in detections)
        notes = f"Found {len(detections)} objects (no specific pill labels). Objects: {described}"

    return CountResult(count=len(pills), confidence=confidence, notes=notes, pills=pills)


def _to_number(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _to_count(value: Any) -> int:
    number = _to_number(value, 0.0)
    return max(0, int(number))


def _to_tier(value: Any) -> ConfidenceTier:
    if isinstance(value, str):
        try:
            return ConfidenceTier(value.strip().lower())
        except ValueError:
            pass
    return ConfidenceTier.MEDIUM


def build_fallback_result(payload: Dict[str, Any]) -> CountResult:
    """
    Normalize the model's self-reported JSON.

    ``count`` is taken as reported and is not reconciled with the number of
    pill coordinates.
    """
    raw_pills = payload.get("pills")
    if not isinstance(raw_pills, list):
        raw_pills = []

    pills = []
    for p in raw_pills:
        if not isinstance(p, dict):
            p = {}
        pills.append(
            PillPosition(
                x=clamp_percent(_to_number(p.get("x"), DEFAULT_COORDINATE)),
                y=clamp_percent(_to_number(p.get("y"), DEFAULT_COORDINATE)),
            )
        )

    count = _to_count(payload.get("count"))
    if count != len(pills):
        logger.warning(
            "Fallback count mismatch: count=%s, pills=%s (left as reported)",
            count,
            len(pills),
        )

    notes = payload.get("notes")
    return CountResult(
        count=count,
        confidence=_to_tier(payload.get("confidence")),
        notes=FALLBACK_NOTES_PREFIX + (notes if isinstance(notes, str) else ""),
        pills=pills,
    )
