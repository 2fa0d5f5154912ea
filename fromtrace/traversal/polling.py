"""Bounded poll for records that may still be in flight"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol

from loguru import logger

from fromtrace.core.config import settings
from fromtrace.core.errors import RecordNotFoundError, TimedOutWaitingForRecord
from fromtrace.core.models import Origin


class OriginSource(Protocol):
    """Anything traversal can read Origins from"""

    async def get(self, record_id: str) -> Optional[Origin]: ...

    async def has(self, record_id: str) -> bool: ...


@dataclass(frozen=True)
class PollPolicy:
    """Wait ``interval`` between attempts; give up once ``max_wait`` has passed"""

    interval: float = field(default_factory=lambda: settings.RECORD_POLL_INTERVAL_SECONDS)
    max_wait: float = field(default_factory=lambda: settings.RECORD_MAX_WAIT_SECONDS)


async def wait_for_record(
    source: OriginSource,
    record_id: str,
    policy: Optional[PollPolicy] = None,
) -> None:
    """
    Return once ``record_id`` is visible in ``source``.

    Raises:
        TimedOutWaitingForRecord: still missing after ``policy.max_wait``
    """
    policy = policy or PollPolicy()
    loop = asyncio.get_running_loop()
    started = loop.time()
    attempts = 0

    while True:
        attempts += 1
        if await source.has(record_id):
            if attempts > 1:
                logger.debug(
                    "Record {id} visible after {attempts} attempts",
                    id=record_id,
                    attempts=attempts,
                )
            return

        waited = loop.time() - started
        if waited >= policy.max_wait:
            logger.warning(
                "Gave up waiting for record {id} after {waited:.2f}s",
                id=record_id,
                waited=waited,
            )
            raise TimedOutWaitingForRecord(record_id, waited)
        await asyncio.sleep(min(policy.interval, policy.max_wait - waited))


async def fetch_record(
    source: OriginSource,
    record_id: str,
    policy: Optional[PollPolicy] = None,
) -> Origin:
    """Get an Origin, polling with the bounded policy if it is not visible yet"""
    origin = await source.get(record_id)
    if origin is not None:
        return origin

    await wait_for_record(source, record_id, policy)
    origin = await source.get(record_id)
    if origin is None:
        raise RecordNotFoundError(record_id)
    return origin
