import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from pill_counter.config import (
    GOOGLE_CLOUD_VISION_API_KEY,
    GOOGLE_CLOUD_VISION_URL,
    HTTP_TIMEOUT_S,
)
from pill_counter.errors import BackendError, BackendUnavailable, ConfigurationError
from pill_counter.image_ingest import DecodedImage
from .base import Detector, PrimaryOutcome, RawDetection

logger = logging.getLogger(__name__)

MAX_OBJECTS = 100
MAX_LABELS = 20


class CloudVisionDetector(Detector):
    """
    Object-localization detector backed by the Google Cloud Vision REST API.

    Requests up to 100 localized objects and 20 scene labels. One call per
    image, no retry.
    """

    name = "cloud_vision"

    def __init__(
        self,
        api_key: Optional[str] = GOOGLE_CLOUD_VISION_API_KEY,
        url: str = GOOGLE_CLOUD_VISION_URL,
        timeout: Optional[float] = HTTP_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout or None
        self.session = session or requests.Session()

    def _build_payload(self, image: DecodedImage) -> Dict[str, Any]:
        return {
            "requests": [
                {
                    "image": {"content": image.base64},
                    "features": [
                        {"type": "OBJECT_LOCALIZATION", "maxResults": MAX_OBJECTS},
                        {"type": "LABEL_DETECTION", "maxResults": MAX_LABELS},
                    ],
                }
            ]
        }

    def detect(self, image: DecodedImage) -> PrimaryOutcome:
        if not self.api_key:
            raise ConfigurationError("GOOGLE_CLOUD_VISION_API_KEY is not configured")

        logger.info(
            "Sending %.1fkb %s image to Cloud Vision",
            len(image.data) / 1024,
            image.mime_type,
        )
        t0 = time.perf_counter()
        try:
            response = self.session.post(
                self.url,
                params={"key": self.api_key},
                json=self._build_payload(image),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Cloud Vision request failed: %s", e)
            raise BackendUnavailable(f"Vision API unreachable: {e}") from e

        if not response.ok:
            logger.error("Vision API error: %s %s", response.status_code, response.text)
            if response.status_code == 429:
                raise BackendUnavailable("Vision API rate limit exceeded", status_code=429)
            raise BackendUnavailable(f"Vision API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"Vision API returned invalid JSON: {e}") from e

        first = _first_response(data)

        outcome = PrimaryOutcome(
            detections=_parse_objects(first.get("localizedObjectAnnotations") or []),
            labels=_parse_labels(first.get("labelAnnotations") or []),
        )
        logger.info(
            "Cloud Vision returned %s objects, %s labels in %.3fs",
            len(outcome.detections),
            len(outcome.labels),
            time.perf_counter() - t0,
        )
        return outcome


def _parse_objects(annotations: List[Dict[str, Any]]) -> List[RawDetection]:
    detections: List[RawDetection] = []
    for obj in annotations:
        vertices = (obj.get("boundingPoly") or {}).get("normalizedVertices") or []
        # The API omits coordinates that are zero.
        region = tuple(
            (float(v.get("x") or 0.0), float(v.get("y") or 0.0)) for v in vertices
        )
        detections.append(
            RawDetection(
                label=obj.get("name") or "",
                score=float(obj.get("score") or 0.0),
                region=region,
            )
        )
    return detections


def _parse_labels(annotations: List[Dict[str, Any]]) -> List[Tuple[str, float]]:
    return [
        (label.get("description") or "", float(label.get("score") or 0.0))
        for label in annotations
    ]


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return error.get("message") or "Vision API reported an error"
    return str(error)


def _first_response(data: Any) -> Dict[str, Any]:
    """First entry of ``responses``; BackendError for errors or an unexpected shape."""
    if not isinstance(data, dict):
        raise BackendError(f"Unexpected Vision API response: {type(data).__name__}")

    if data.get("error"):
        message = _error_message(data["error"])
        logger.error("Vision API error: %s", message)
        raise BackendError(message)

    responses = data.get("responses") or [{}]
    if not isinstance(responses, list):
        raise BackendError("Unexpected Vision API response: responses is not a list")
    first = responses[0] or {}
    if not isinstance(first, dict):
        raise BackendError("Unexpected Vision API response: responses[0] is not an object")

    if first.get("error"):
        message = _error_message(first["error"])
        logger.error("Vision API embedded error: %s", message)
        raise BackendError(message)
    return first
