import asyncio

import pytest

from pill_counter.training.bulk_queue import BulkIngestQueue, UploadStatus


class _FakePersist:
    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, item, declared):
        self.calls.append((item.id, declared, item.status))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            if item.id in self.fail_ids:
                raise IOError("storage write failed")
        finally:
            self.active -= 1


def test_failed_item_does_not_block_the_rest():
    queue = BulkIngestQueue()
    for item_id in ("1", "2", "3"):
        queue.add(f"img-{item_id}", "4", item_id=item_id)
    persist = _FakePersist(fail_ids={"2"})

    summary = asyncio.run(queue.run(persist))

    assert {i.id: i.status for i in queue.items()} == {
        "1": UploadStatus.DONE,
        "2": UploadStatus.ERROR,
        "3": UploadStatus.DONE,
    }
    assert queue.get("2").error == "storage write failed"
    assert (summary.done, summary.error, summary.pending) == (2, 1, 0)


def test_items_are_processed_sequentially_in_order():
    queue = BulkIngestQueue()
    for item_id in ("a", "b", "c"):
        queue.add("img", "1", item_id=item_id)
    persist = _FakePersist()

    asyncio.run(queue.run(persist))

    assert [c[0] for c in persist.calls] == ["a", "b", "c"]
    assert all(status is UploadStatus.UPLOADING for _, _, status in persist.calls)
    assert persist.max_active == 1


@pytest.mark.parametrize("declared", ["", "  ", "abc", "-2", "1.5"])
def test_item_without_valid_count_stays_pending(declared):
    queue = BulkIngestQueue()
    queue.add("img", "3", item_id="ok")
    queue.add("img", declared, item_id="skip")
    persist = _FakePersist()

    summary = asyncio.run(queue.run(persist))

    assert [c[0] for c in persist.calls] == ["ok"]
    assert queue.get("skip").status is UploadStatus.PENDING
    assert (summary.done, summary.error, summary.pending) == (1, 0, 1)


def test_declared_count_is_passed_as_int():
    queue = BulkIngestQueue()
    queue.add("img", " 12 ", item_id="x")
    persist = _FakePersist()
    asyncio.run(queue.run(persist))
    assert persist.calls[0][1] == 12


def test_finished_items_are_not_uploaded_again():
    queue = BulkIngestQueue()
    queue.add("img", "1", item_id="x")
    persist = _FakePersist()
    asyncio.run(queue.run(persist))
    asyncio.run(queue.run(persist))
    assert len(persist.calls) == 1


def test_count_is_locked_after_upload():
    queue = BulkIngestQueue()
    queue.add("img", "", item_id="x")
    queue.set_declared_count("x", "5")
    asyncio.run(queue.run(_FakePersist()))
    with pytest.raises(ValueError):
        queue.set_declared_count("x", "6")


def test_change_notifications_follow_lifecycle():
    seen = []
    queue = BulkIngestQueue(on_change=lambda item: seen.append((item.id, item.status)))
    queue.add("img", "1", item_id="x")
    queue.add("img", "1", item_id="y")
    asyncio.run(queue.run(_FakePersist(fail_ids={"y"})))
    assert seen == [
        ("x", UploadStatus.UPLOADING),
        ("x", UploadStatus.DONE),
        ("y", UploadStatus.UPLOADING),
        ("y", UploadStatus.ERROR),
    ]


def test_snapshots_are_not_live_references():
    queue = BulkIngestQueue()
    queue.add("img", "1", item_id="x")
    before = queue.items()
    asyncio.run(queue.run(_FakePersist()))
    assert before[0].status is UploadStatus.PENDING
    assert queue.items()[0].status is UploadStatus.DONE


def test_duplicate_ids_are_rejected():
    queue = BulkIngestQueue()
    queue.add("img", "1", item_id="x")
    with pytest.raises(ValueError):
        queue.add("img", "1", item_id="x")


def test_remove_pending_item():
    queue = BulkIngestQueue()
    item = queue.add("img", "1")
    queue.remove(item.id)
    assert queue.items() == ()
