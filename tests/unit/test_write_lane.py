"""Unit tests for the batched write lane"""

import asyncio
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from fromtrace.core.errors import InvalidOriginError
from fromtrace.core.models import ActionKind, create_origin
from fromtrace.pipeline.write_lane import OperationLogWriter
from fromtrace.storage.log_store import OperationLogStore


@pytest_asyncio.fixture
async def store(tmp_path: Path):
    store = OperationLogStore(tmp_path / "lane.db")
    await store.connect()
    yield store
    await store.close()


def make_records(count: int, prefix: str = "value"):
    origins = [create_origin(ActionKind.STRING_LITERAL, f"{prefix} {i}") for i in range(count)]
    return [(origin.id, origin) for origin in origins]


class FlakyStore:
    """Operation log whose first commit fails"""

    def __init__(self, store: OperationLogStore) -> None:
        self.store = store
        self.failures = 1

    async def append(self, records):
        if self.failures:
            self.failures -= 1
            raise aiosqlite.OperationalError("disk I/O error")
        return await self.store.append(records)


class TestOperationLogWriter:
    """Test grouping, acknowledgement and failure handling"""

    @pytest.mark.asyncio
    async def test_append_acknowledges_durable_write(self, store: OperationLogStore) -> None:
        """Once the ack arrives the records are readable"""
        lane = OperationLogWriter(store, flush_interval=0.01)
        await lane.start()
        records = make_records(3)

        ack = await lane.append(records)

        assert ack.written == 3
        for record_id, _ in records:
            assert await store.has(record_id)
        await lane.stop()

    @pytest.mark.asyncio
    async def test_concurrent_submissions_share_a_batch(self, store: OperationLogStore) -> None:
        """Submissions queued together commit in one transaction"""
        lane = OperationLogWriter(store, flush_interval=0.05)
        await lane.start()

        futures = [lane.submit(make_records(2, prefix=f"batch {n}")) for n in range(3)]
        acks = await asyncio.gather(*futures)

        assert lane.batches_written == 1
        assert all(ack.batch_size == 6 for ack in acks)
        assert await store.count() == 6
        await lane.stop()

    @pytest.mark.asyncio
    async def test_batch_size_caps_grouping(self, store: OperationLogStore) -> None:
        lane = OperationLogWriter(store, batch_size=2, flush_interval=0.01)
        await lane.start()

        futures = [lane.submit(make_records(1, prefix=f"single {n}")) for n in range(3)]
        await asyncio.gather(*futures)

        assert lane.batches_written == 2
        assert lane.get_stats()["records_written"] == 3
        await lane.stop()

    @pytest.mark.asyncio
    async def test_malformed_submission_rejected_alone(self, store: OperationLogStore) -> None:
        """A bad submission fails its own caller and leaves a queued good one intact"""
        lane = OperationLogWriter(store, flush_interval=0.05)
        await lane.start()
        good = make_records(1)

        good_future = lane.submit(good)
        with pytest.raises(InvalidOriginError):
            lane.submit([("bad", {"action": "nope", "value": 1})])
        ack = await good_future

        assert ack.written == 1
        assert await store.has(good[0][0])
        assert lane.get_stats()["records_submitted"] == 1
        await lane.stop()

    @pytest.mark.asyncio
    async def test_serialized_record_without_id(self, store: OperationLogStore) -> None:
        lane = OperationLogWriter(store, flush_interval=0.01)
        await lane.start()

        ack = await lane.append([("abc", {"action": "String Literal", "value": "hello"})])

        assert ack.written == 1
        assert (await store.get("abc")).value == "hello"
        await lane.stop()

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_lane_running(self, store: OperationLogStore) -> None:
        """A batch that fails to commit fails its submitters and later batches still commit"""
        lane = OperationLogWriter(FlakyStore(store), flush_interval=0.01)
        await lane.start()

        with pytest.raises(aiosqlite.OperationalError):
            await lane.append(make_records(1, prefix="lost"))

        ack = await lane.append(make_records(1))

        assert ack.written == 1
        assert lane.running
        stats = lane.get_stats()
        assert stats["batches_failed"] == 1
        assert stats["batches_written"] == 1
        await lane.stop()

    @pytest.mark.asyncio
    async def test_explicit_batch_size_kept(self, store: OperationLogStore) -> None:
        assert OperationLogWriter(store, batch_size=1).batch_size == 1
        assert OperationLogWriter(store, batch_size=0).batch_size == 0
        assert OperationLogWriter(store).batch_size == 500

    @pytest.mark.asyncio
    async def test_submit_requires_start(self, store: OperationLogStore) -> None:
        lane = OperationLogWriter(store)

        with pytest.raises(RuntimeError):
            lane.submit(make_records(1))

    @pytest.mark.asyncio
    async def test_stop_flushes_queue(self, store: OperationLogStore) -> None:
        """Stopping writes everything that was already submitted"""
        lane = OperationLogWriter(store, flush_interval=0.5)
        await lane.start()
        records = make_records(4)

        future = lane.submit(records)
        await lane.stop()

        assert future.done()
        assert future.result().written == 4
        assert not lane.running
        assert await store.count() == 4
