"""Write Lane - batched, asynchronously acknowledged appends"""

import asyncio
from typing import Any, Iterable, Optional

from loguru import logger

from fromtrace.core.config import settings
from fromtrace.core.models import AppendAck
from fromtrace.storage.log_store import OperationLogStore, RecordInput, prepare_records

_Submission = tuple[list[tuple[str, dict[str, Any]]], "asyncio.Future[AppendAck]"]


class OperationLogWriter:
    """
    Write Lane in front of the operation log.

    Operations:
    - Queue records from any number of producers
    - Group queued submissions into one batch until ``batch_size`` records
      are waiting or ``flush_interval`` has passed
    - Append each batch in a single transaction
    - Resolve every submitter's future with the ack of the batch its
      records were committed in

    Submissions are never split across batches, so a single large
    submission can exceed ``batch_size``. Malformed records are rejected
    by ``submit``. A batch that fails to commit fails its submitters'
    futures and the lane keeps running.
    """

    def __init__(
        self,
        store: OperationLogStore,
        batch_size: Optional[int] = None,
        flush_interval: Optional[float] = None,
    ) -> None:
        self.store = store
        self.batch_size = batch_size if batch_size is not None else settings.WRITE_BATCH_SIZE
        self.flush_interval = (
            flush_interval if flush_interval is not None else settings.WRITE_FLUSH_INTERVAL_SECONDS
        )
        self._queue: "asyncio.Queue[_Submission]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.records_submitted = 0
        self.records_written = 0
        self.batches_written = 0
        self.batches_failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            "WriteLane started (batch_size={size}, flush_interval={interval}s)",
            size=self.batch_size,
            interval=self.flush_interval,
        )

    async def stop(self) -> None:
        """Flush everything queued, then end the background task"""
        if not self._task:
            return
        await self.flush()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("WriteLane stopped")

    def submit(self, records: Iterable[tuple[str, RecordInput]]) -> "asyncio.Future[AppendAck]":
        """
        Queue records without waiting for them to be written.

        Records are validated here, so a malformed submission fails its own
        caller and never joins a batch with other producers' records.

        Returns:
            Future resolved with the ack once the records are durable

        Raises:
            InvalidOriginError: a record is malformed or filed under the wrong id
        """
        if not self.running:
            raise RuntimeError("WriteLane not started")

        batch = prepare_records(records)
        future: "asyncio.Future[AppendAck]" = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((batch, future))
        self.records_submitted += len(batch)
        return future

    async def append(self, records: Iterable[tuple[str, RecordInput]]) -> AppendAck:
        """Queue records and wait for their ack"""
        return await self.submit(records)

    async def flush(self) -> None:
        """Wait until every queued submission has been written or failed"""
        await self._queue.join()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            pending = [await self._queue.get()]
            waiting = len(pending[0][0])
            deadline = loop.time() + self.flush_interval

            while waiting < self.batch_size:
                timeout = deadline - loop.time()
                if timeout <= 0:
                    break
                try:
                    submission = await asyncio.wait_for(self._queue.get(), timeout)
                except asyncio.TimeoutError:
                    break
                pending.append(submission)
                waiting += len(submission[0])

            try:
                await self._write_batch(pending)
            finally:
                for _ in pending:
                    self._queue.task_done()

    async def _write_batch(self, pending: list[_Submission]) -> None:
        records = [record for batch, _ in pending for record in batch]
        try:
            ack = await self.store.append(records)
        except Exception as e:
            self.batches_failed += 1
            logger.error(
                "WriteLane batch of {count} records failed: {error}",
                count=len(records),
                error=e,
            )
            for _, future in pending:
                if not future.done():
                    future.set_exception(e)
            return

        self.batches_written += 1
        self.records_written += ack.written
        for _, future in pending:
            if not future.done():
                future.set_result(ack)

        logger.debug(
            "WriteLane batch complete: {written} written, {duplicates} duplicates "
            "from {submissions} submissions",
            written=ack.written,
            duplicates=ack.duplicates,
            submissions=len(pending),
        )

    def get_stats(self) -> dict:
        """Get write lane statistics"""
        return {
            "records_submitted": self.records_submitted,
            "records_written": self.records_written,
            "batches_written": self.batches_written,
            "batches_failed": self.batches_failed,
            "queued_submissions": self._queue.qsize(),
        }
