"""
Detector interface shared by the primary and fallback backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from pill_counter.image_ingest import DecodedImage


@dataclass(frozen=True)
class RawDetection:
    """One labelled region from the object-localization backend."""
    label: str
    score: float
    region: Tuple[Tuple[float, float], ...]  # normalized (x, y) vertices


@dataclass(frozen=True)
class DetectionOutcome:
    """Base for whatever a detector hands back to the pipeline."""


@dataclass(frozen=True)
class PrimaryOutcome(DetectionOutcome):
    detections: List[RawDetection] = field(default_factory=list)
    labels: List[Tuple[str, float]] = field(default_factory=list)


@dataclass(frozen=True)
class FallbackOutcome(DetectionOutcome):
    payload: Dict[str, Any] = field(default_factory=dict)


class Detector(ABC):
    """
    Abstract base class for detection backends.

    Implementations make exactly one backend call per ``detect`` and raise
    errors from ``pill_counter.errors`` on failure.
    """

    name: str = ""

    @abstractmethod
    def detect(self, image: DecodedImage) -> DetectionOutcome:
        ...
