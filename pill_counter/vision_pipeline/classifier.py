"""Pill-like filtering of raw detections and the fallback decision."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List

from .base import RawDetection

logger = logging.getLogger(__name__)

PILL_KEYWORDS = ("pill", "tablet", "capsule", "medicine", "drug", "medication", "vitamin")

# Detections scoring above this count as pills whatever their label.
PILL_SCORE_THRESHOLD = 0.5


class Strategy(str, Enum):
    PILLS = "pills"
    ALL_OBJECTS = "all_objects"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Selection:
    strategy: Strategy
    detections: List[RawDetection] = field(default_factory=list)


def is_pill_like(detection: RawDetection) -> bool:
    name = (detection.label or "").lower()
    if any(keyword in name for keyword in PILL_KEYWORDS):
        return True
    return detection.score > PILL_SCORE_THRESHOLD


def select_detections(detections: Iterable[RawDetection]) -> Selection:
    """
    Decide which detections are authoritative.

    1. Any pill-like detections -> use those.
    2. Otherwise any objects at all -> use all of them (degraded).
    3. Nothing seen -> escalate to the generative fallback.
    """
    all_objects = list(detections)
    pills = [d for d in all_objects if is_pill_like(d)]

    logger.info(
        "[CLASSIFIER] Found %s objects, %s potential pills",
        len(all_objects),
        len(pills),
    )

    if pills:
        return Selection(Strategy.PILLS, pills)
    if all_objects:
        return Selection(Strategy.ALL_OBJECTS, all_objects)
    return Selection(Strategy.FALLBACK)
