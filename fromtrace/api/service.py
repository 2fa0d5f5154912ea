"""Write, read and traversal API over the operation log"""

import asyncio
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from loguru import logger
from pydantic import BaseModel

from fromtrace.core.config import settings
from fromtrace.core.errors import (
    InvalidOriginError,
    OffsetOutOfRangeError,
    RecordNotFoundError,
    TimedOutWaitingForRecord,
)
from fromtrace.core.models import AppendAck, Origin, TraversalError, collect_records
from fromtrace.pipeline.write_lane import OperationLogWriter
from fromtrace.storage.loc_store import LocStore
from fromtrace.storage.log_store import OperationLogStore, RecordInput
from fromtrace.traversal.engine import TraversalEngine
from fromtrace.traversal.polling import PollPolicy
from fromtrace.traversal.resolver import LocationResolver, LocStoreResolver


# Response models
class TraverseResponse(BaseModel):
    """Steps for one character, most derived first"""
    steps: list[dict[str, Any]]
    complete: bool
    error: Optional[TraversalError] = None


class ErrorResponse(BaseModel):
    """Structured failure returned instead of raising"""
    err: str


class ProvenanceService:
    """
    Entry point for producers and consumers of provenance records.

    Producers append batches (through the write lane when one is attached).
    Consumers check for and read records, and traverse from a character of
    a record back to its roots. Query failures come back as
    ``ErrorResponse`` payloads rather than exceptions.
    """

    def __init__(
        self,
        store: OperationLogStore,
        writer: Optional[OperationLogWriter] = None,
        resolver: Optional[LocationResolver] = None,
        poll: Optional[PollPolicy] = None,
    ) -> None:
        self.store = store
        self.writer = writer
        self.engine = TraversalEngine(store, resolver=resolver, poll=poll)
        self._loc_store: Optional[LocStore] = None

    @classmethod
    async def open(
        cls,
        db_path: Union[Path, str, None] = None,
        loc_db_path: Union[Path, str, None] = None,
        batched: bool = True,
    ) -> "ProvenanceService":
        """Connect the stores named in settings and start the write lane"""
        store = OperationLogStore(db_path or settings.DB_PATH)
        await store.connect()

        loc_store = LocStore(loc_db_path or settings.LOC_DB_PATH)
        await loc_store.connect()

        writer = None
        if batched:
            writer = OperationLogWriter(store)
            await writer.start()

        service = cls(store, writer=writer, resolver=LocStoreResolver(loc_store))
        service._loc_store = loc_store
        logger.info("ProvenanceService ready (batched={batched})", batched=batched)
        return service

    async def close(self) -> None:
        if self.writer:
            await self.writer.stop()
        if self._loc_store:
            await self._loc_store.close()
        await self.store.close()

    async def append_records(self, batch: Iterable[tuple[str, RecordInput]]) -> AppendAck:
        """Write API: persist a batch of (id, serialized Origin) pairs"""
        if self.writer and self.writer.running:
            return await self.writer.append(batch)
        return await self.store.append(list(batch))

    async def store_origins(self, *origins: Origin) -> AppendAck:
        """Persist in-memory Origins together with every tracked input they reference"""
        return await self.append_records(collect_records(*origins))

    async def has_record(self, record_id: str) -> bool:
        return await self.store.has(record_id)

    async def get_record(self, record_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_record(record_id)

    async def traverse(
        self,
        start_id: str,
        start_char_index: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> Union[TraverseResponse, ErrorResponse]:
        """Traversal API: causal chain for one character, or an error payload"""
        try:
            result = await self.engine.traverse(start_id, start_char_index, cancel)
        except TimedOutWaitingForRecord:
            return ErrorResponse(err="Log not found - might still be saving data")
        except (RecordNotFoundError, OffsetOutOfRangeError, InvalidOriginError) as e:
            logger.warning(
                "Traverse {id}:{index} failed: {error}",
                id=start_id,
                index=start_char_index,
                error=e,
            )
            return ErrorResponse(err=str(e))

        return TraverseResponse(
            steps=[step.to_dict() for step in result.steps],
            complete=result.complete,
            error=result.error,
        )
