"""Shared test helpers: image payloads, regions and fake detectors."""

import base64
from io import BytesIO

from PIL import Image

from pill_counter.image_ingest import DecodedImage
from pill_counter.vision_pipeline.base import Detector, FallbackOutcome, PrimaryOutcome


def make_image_bytes(fmt: str = "PNG", size=(8, 8)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


def make_data_url(fmt: str = "PNG") -> str:
    mime = "image/jpeg" if fmt == "JPEG" else f"image/{fmt.lower()}"
    return f"data:{mime};base64,{base64.b64encode(make_image_bytes(fmt)).decode()}"


def square(cx: float, cy: float, half: float = 0.05):
    return (
        (cx - half, cy - half),
        (cx + half, cy - half),
        (cx + half, cy + half),
        (cx - half, cy + half),
    )


class FakePrimary(Detector):
    name = "fake_primary"

    def __init__(self, detections=None, error: Exception = None):
        self.detections = list(detections or [])
        self.error = error
        self.calls = 0

    def detect(self, image: DecodedImage) -> PrimaryOutcome:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return PrimaryOutcome(detections=self.detections)


class FakeFallback(Detector):
    name = "fake_fallback"

    def __init__(self, payload=None, error: Exception = None):
        self.payload = payload or {}
        self.error = error
        self.calls = 0

    def detect(self, image: DecodedImage) -> FallbackOutcome:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return FallbackOutcome(payload=self.payload)
