import asyncio
import logging
import time
from typing import Optional

from pill_counter.errors import ParseError
from pill_counter.image_ingest import decode_image_payload
from pill_counter.schemas import CountResult
from .base import Detector, FallbackOutcome, PrimaryOutcome
from .classifier import Strategy, select_detections
from .normalizer import build_detection_result, build_fallback_result, degraded_result

logger = logging.getLogger(__name__)


class PillCountPipeline:
    """
    Cloud-Vision-first pill counting pipeline:

    data URL
      ↓
    decode + validate image
      ↓
    primary object localization
      ↓
    pill-like filter
      ├─ pills found        → result from pill detections
      ├─ other objects only → result from all objects (medium confidence)
      └─ nothing seen       → generative fallback → result from model JSON

    The primary call always finishes before the fallback is considered.
    Transport failures on the attempted path propagate; an unparseable
    fallback reply degrades to an empty low-confidence result.
    """

    def __init__(self, primary: Detector, fallback: Optional[Detector] = None):
        self.primary = primary
        self.fallback = fallback

    def count(self, payload: Optional[str]) -> CountResult:
        image = decode_image_payload(payload)

        t0 = time.perf_counter()
        logger.info("[PIPELINE] Step 1: primary detection via %s", self.primary.name)
        outcome = self.primary.detect(image)
        if not isinstance(outcome, PrimaryOutcome):
            raise TypeError(f"Primary detector returned {type(outcome).__name__}")
        primary_time = time.perf_counter() - t0

        selection = select_detections(outcome.detections)
        logger.info(
            "[PIPELINE] Step 1: primary completed in %sms, strategy=%s",
            round(primary_time * 1000, 2),
            selection.strategy.value,
        )

        if selection.strategy is not Strategy.FALLBACK:
            result = build_detection_result(selection.detections, selection.strategy)
            self._log_result(result, t0)
            return result

        if self.fallback is None:
            logger.info("[PIPELINE] No objects detected and fallback disabled")
            return degraded_result("No pills detected by Vision API")

        logger.info("[PIPELINE] Step 2: no objects detected, falling back to %s", self.fallback.name)
        t_fb = time.perf_counter()
        try:
            fallback_outcome = self.fallback.detect(image)
        except ParseError as e:
            logger.error("[PIPELINE] Fallback parse error: %s", e)
            return degraded_result()
        if not isinstance(fallback_outcome, FallbackOutcome):
            raise TypeError(f"Fallback detector returned {type(fallback_outcome).__name__}")
        logger.info(
            "[PIPELINE] Step 2: fallback completed in %sms",
            round((time.perf_counter() - t_fb) * 1000, 2),
        )

        result = build_fallback_result(fallback_outcome.payload)
        self._log_result(result, t0)
        return result

    async def count_async(self, payload: Optional[str]) -> CountResult:
        return await asyncio.to_thread(self.count, payload)

    @staticmethod
    def _log_result(result: CountResult, t0: float) -> None:
        logger.info(
            "[PIPELINE] Result count=%s confidence=%s, total time: %sms",
            result.count,
            result.confidence.value,
            round((time.perf_counter() - t0) * 1000, 2),
        )
