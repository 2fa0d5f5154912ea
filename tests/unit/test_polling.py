"""Unit tests for bounded record polling"""

import asyncio

import pytest

from fromtrace.core.errors import RecordNotFoundError, TimedOutWaitingForRecord
from fromtrace.core.models import ActionKind, create_origin
from fromtrace.storage.memory_source import MemoryOriginSource
from fromtrace.traversal.polling import PollPolicy, fetch_record, wait_for_record

FAST = PollPolicy(interval=0.01, max_wait=0.1)


class TestPolling:
    """Test waiting for records that are still being written"""

    @pytest.mark.asyncio
    async def test_visible_record_returns_immediately(self) -> None:
        origin = create_origin(ActionKind.STRING_LITERAL, "ready")
        source = MemoryOriginSource(origin)

        assert await fetch_record(source, origin.id, FAST) is origin

    @pytest.mark.asyncio
    async def test_record_appearing_later(self) -> None:
        """A record written while polling is picked up"""
        origin = create_origin(ActionKind.STRING_LITERAL, "late")
        source = MemoryOriginSource()

        async def write_later() -> None:
            await asyncio.sleep(0.03)
            source.add(origin)

        task = asyncio.create_task(write_later())
        fetched = await fetch_record(source, origin.id, PollPolicy(interval=0.01, max_wait=1.0))
        await task

        assert fetched.id == origin.id

    @pytest.mark.asyncio
    async def test_gives_up_after_max_wait(self) -> None:
        source = MemoryOriginSource()
        loop = asyncio.get_running_loop()
        started = loop.time()

        with pytest.raises(TimedOutWaitingForRecord) as exc_info:
            await wait_for_record(source, "missing", FAST)

        assert exc_info.value.record_id == "missing"
        assert exc_info.value.waited >= FAST.max_wait
        assert loop.time() - started < 1.0

    @pytest.mark.asyncio
    async def test_timeout_is_a_not_found_error(self) -> None:
        with pytest.raises(RecordNotFoundError):
            await fetch_record(MemoryOriginSource(), "missing", FAST)

    def test_default_policy_from_settings(self) -> None:
        policy = PollPolicy()

        assert policy.interval == 0.25
        assert policy.max_wait == 2.0
