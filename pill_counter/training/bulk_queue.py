"""Sequential bulk upload of manually counted training images."""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from pill_counter.image_ingest import decode_image_payload
from .store import BULK_UPLOAD_NOTES, MANUAL_CONFIDENCE, TrainingStore

logger = logging.getLogger(__name__)

_COUNT_RE = re.compile(r"^\d+$")


class UploadStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING},
    UploadStatus.UPLOADING: {UploadStatus.DONE, UploadStatus.ERROR},
    UploadStatus.DONE: set(),
    UploadStatus.ERROR: set(),
}


@dataclass(frozen=True)
class UploadItem:
    id: str
    image_ref: str
    declared_count: str = ""
    status: UploadStatus = UploadStatus.PENDING
    error: Optional[str] = None

    @property
    def parsed_count(self) -> Optional[int]:
        """Declared count as an int, or None if missing / not a whole number."""
        value = (self.declared_count or "").strip()
        if not _COUNT_RE.match(value):
            return None
        return int(value)


@dataclass(frozen=True)
class BulkIngestSummary:
    done: int
    error: int
    pending: int


Persist = Callable[[UploadItem, int], Awaitable[Any]]


class BulkIngestQueue:
    """
    Ordered batch of images, each with a user-declared count.

    ``run`` uploads the ready items one at a time; a failed item is marked
    ``error`` and the batch moves on. Items without a valid count are
    skipped and stay ``pending``. Nothing is rolled back.
    """

    def __init__(self, on_change: Optional[Callable[[UploadItem], None]] = None):
        self._items: Dict[str, UploadItem] = {}
        self._on_change = on_change
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def items(self) -> Tuple[UploadItem, ...]:
        return tuple(self._items.values())

    def get(self, item_id: str) -> UploadItem:
        return self._items[item_id]

    def add(self, image_ref: str, declared_count: str = "", item_id: Optional[str] = None) -> UploadItem:
        item_id = item_id or uuid.uuid4().hex
        if item_id in self._items:
            raise ValueError(f"Duplicate upload item id: {item_id}")
        item = UploadItem(id=item_id, image_ref=image_ref, declared_count=declared_count or "")
        self._items[item_id] = item
        return item

    def remove(self, item_id: str) -> None:
        if self._items[item_id].status is UploadStatus.UPLOADING:
            raise ValueError(f"Item {item_id} is uploading")
        del self._items[item_id]

    def set_declared_count(self, item_id: str, declared_count: str) -> UploadItem:
        item = self._items[item_id]
        if item.status is not UploadStatus.PENDING:
            raise ValueError(f"Item {item_id} is {item.status.value}, count is locked")
        item = replace(item, declared_count=declared_count)
        self._items[item_id] = item
        return item

    def ready_items(self) -> Tuple[UploadItem, ...]:
        return tuple(
            i for i in self._items.values()
            if i.status is UploadStatus.PENDING and i.parsed_count is not None
        )

    def summary(self) -> BulkIngestSummary:
        statuses = [i.status for i in self._items.values()]
        return BulkIngestSummary(
            done=statuses.count(UploadStatus.DONE),
            error=statuses.count(UploadStatus.ERROR),
            pending=statuses.count(UploadStatus.PENDING),
        )

    def _transition(self, item_id: str, status: UploadStatus, error: Optional[str] = None) -> UploadItem:
        item = self._items[item_id]
        if status not in _TRANSITIONS[item.status]:
            raise ValueError(f"Illegal transition {item.status.value} -> {status.value} for {item_id}")
        item = replace(item, status=status, error=error)
        self._items[item_id] = item
        if self._on_change is not None:
            self._on_change(item)
        return item

    async def run(self, persist: Persist) -> BulkIngestSummary:
        if self._running:
            raise RuntimeError("Bulk upload already running")

        ready = self.ready_items()
        logger.info("[BULK] Uploading %s of %s items", len(ready), len(self._items))
        self._running = True
        try:
            for queued in ready:
                # The batch may have been edited while earlier items uploaded.
                item = self._items.get(queued.id)
                if item is None or item.status is not UploadStatus.PENDING or item.parsed_count is None:
                    continue
                item = self._transition(item.id, UploadStatus.UPLOADING)
                try:
                    await persist(item, item.parsed_count)
                except Exception as e:
                    logger.error("[BULK] Error uploading %s: %s", item.id, e)
                    self._transition(item.id, UploadStatus.ERROR, error=str(e))
                else:
                    self._transition(item.id, UploadStatus.DONE)
        finally:
            self._running = False

        summary = self.summary()
        logger.info(
            "[BULK] Upload complete: done=%s error=%s pending=%s",
            summary.done,
            summary.error,
            summary.pending,
        )
        return summary


def store_persister(store: TrainingStore) -> Persist:
    """Persist an item's data URL image to ``store`` as a manual-count record."""

    async def persist(item: UploadItem, declared: int) -> None:
        image = decode_image_payload(item.image_ref)
        await asyncio.to_thread(
            store.save,
            image,
            declared,
            declared,
            MANUAL_CONFIDENCE,
            BULK_UPLOAD_NOTES,
            "bulk",
        )

    return persist
