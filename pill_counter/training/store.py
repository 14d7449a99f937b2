"""Persistence of labelled training images: store the blob, then its metadata."""

import json
import logging
import os
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from pill_counter.config import TRAINING_DATA_DIR
from pill_counter.image_ingest import DecodedImage

logger = logging.getLogger(__name__)

MANUAL_CONFIDENCE = "manual"
BULK_UPLOAD_NOTES = "Bulk upload - manual count"


@dataclass(frozen=True)
class TrainingRecord:
    image_path: str
    ai_count: int
    corrected_count: Optional[int]
    ai_confidence: str
    notes: Optional[str]
    created_at: str


class TrainingStore(ABC):
    """Store an image blob, then write a metadata record pointing at it."""

    @abstractmethod
    def save(
        self,
        image: DecodedImage,
        ai_count: int,
        corrected_count: Optional[int],
        ai_confidence: str,
        notes: Optional[str] = None,
        prefix: str = "pill-image",
    ) -> TrainingRecord:
        ...

    @abstractmethod
    def count(self) -> int:
        ...


def _extension(mime_type: str) -> str:
    subtype = mime_type.split("/", 1)[-1].lower()
    return "jpg" if subtype == "jpeg" else subtype


class LocalTrainingStore(TrainingStore):
    """
    Filesystem store:
    - blobs under <root>/images/
    - metadata as JSON lines in <root>/records.jsonl

    A blob whose metadata write fails is left in place.
    """

    def __init__(self, root: str = TRAINING_DATA_DIR):
        self.root = root
        self.images_dir = os.path.join(root, "images")
        self.records_path = os.path.join(root, "records.jsonl")
        self._lock = threading.Lock()

    def save(
        self,
        image: DecodedImage,
        ai_count: int,
        corrected_count: Optional[int],
        ai_confidence: str,
        notes: Optional[str] = None,
        prefix: str = "pill-image",
    ) -> TrainingRecord:
        os.makedirs(self.images_dir, exist_ok=True)

        filename = f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{_extension(image.mime_type)}"
        blob_path = os.path.join(self.images_dir, filename)
        with open(blob_path, "wb") as f:
            f.write(image.data)

        record = TrainingRecord(
            image_path=os.path.join("images", filename),
            ai_count=ai_count,
            corrected_count=corrected_count,
            ai_confidence=ai_confidence,
            notes=notes,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock, open(self.records_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(record), ensure_ascii=False) + "\n")

        logger.info("Stored training image %s (ai_count=%s)", record.image_path, ai_count)
        return record

    def count(self) -> int:
        if not os.path.exists(self.records_path):
            return 0
        with self._lock, open(self.records_path, "r", encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())


def save_contribution(
    store: TrainingStore,
    image: DecodedImage,
    ai_count: int,
    corrected_count: int,
    confidence: str,
    notes: Optional[str] = None,
) -> TrainingRecord:
    """Store a photo the user counted; the correction is kept only if it differs."""
    return store.save(
        image,
        ai_count=ai_count,
        corrected_count=corrected_count if corrected_count != ai_count else None,
        ai_confidence=confidence,
        notes=notes or None,
    )
