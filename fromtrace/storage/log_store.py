"""SQLite-backed append-only operation log"""

import asyncio
import time
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import aiosqlite
from loguru import logger

from fromtrace.core.errors import InvalidOriginError
from fromtrace.core.models import AppendAck, Origin, decode_record, encode_record

RecordInput = Union[dict[str, Any], Origin]


def prepare_records(records: Iterable[tuple[str, RecordInput]]) -> list[tuple[str, dict[str, Any]]]:
    """
    Validate a batch and return it as (id, serialized Origin) pairs.

    Serialized records may leave out ``id``; the batch key fills it in.

    Raises:
        InvalidOriginError: a record is malformed or filed under the wrong id
    """
    prepared = []
    for record_id, record in records:
        if isinstance(record, Origin):
            record = record.to_record()
        elif isinstance(record, dict):
            record = {**record, "id": record.get("id", record_id)}
            # Decoding validates the record before it reaches the log
            Origin.from_record(record)
        else:
            raise InvalidOriginError(
                f"Record {record_id} must be an Origin or a dict, not {type(record).__name__}"
            )
        if record["id"] != record_id:
            raise InvalidOriginError(f"Record filed under {record_id} carries id {record['id']}")
        prepared.append((record_id, record))
    return prepared


class OperationLogStore:
    """
    Durable point-lookup store for serialized Origins.

    Features:
    - Append-only: a record is never replaced once written (first write wins)
    - One transaction per batch, so a crash loses at most the batch in flight
    - WAL journal with separate writer and reader connections, so lookups
      never queue behind appends
    - No retries: a record that is still being flushed reads as missing
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = Path(db_path)
        self._writer: Optional[aiosqlite.Connection] = None
        self._reader: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open writer and reader connections and create the schema"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._writer = await aiosqlite.connect(str(self.db_path))
        await self._writer.execute("PRAGMA journal_mode=WAL")
        await self._writer.execute("PRAGMA synchronous=NORMAL")
        await self._setup_schema()

        self._reader = await aiosqlite.connect(str(self.db_path))
        self._reader.row_factory = aiosqlite.Row
        logger.info(f"Connected to operation log: {self.db_path}")

    async def close(self) -> None:
        """Close both connections"""
        for conn in (self._reader, self._writer):
            if conn:
                await conn.close()
        self._reader = None
        self._writer = None
        logger.info("Operation log closed")

    async def __aenter__(self) -> "OperationLogStore":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _setup_schema(self) -> None:
        if not self._writer:
            raise RuntimeError("Database not connected")

        await self._writer.execute("""
            CREATE TABLE IF NOT EXISTS operation_logs (
                id TEXT PRIMARY KEY,
                record TEXT NOT NULL,
                stored_at REAL NOT NULL
            )
        """)
        await self._writer.commit()
        logger.debug("Operation log schema initialized")

    async def append(self, records: Iterable[tuple[str, RecordInput]]) -> AppendAck:
        """
        Durably persist one batch.

        Every record is validated before anything is written, and the whole
        batch commits or rolls back together. The returned ack means the
        batch is on disk.

        Args:
            records: (id, Origin or serialized Origin) pairs

        Raises:
            InvalidOriginError: a record is malformed or filed under the wrong id
        """
        if not self._writer:
            raise RuntimeError("Database not connected")

        stored_at = time.time()
        rows = [
            (record_id, encode_record(record), stored_at)
            for record_id, record in prepare_records(records)
        ]

        async with self._write_lock:
            before = self._writer.total_changes
            try:
                await self._writer.executemany(
                    "INSERT OR IGNORE INTO operation_logs (id, record, stored_at) VALUES (?, ?, ?)",
                    rows,
                )
                await self._writer.commit()
            except aiosqlite.Error:
                await self._writer.rollback()
                logger.error("Batch of {count} records rolled back", count=len(rows))
                raise
            written = self._writer.total_changes - before

        ack = AppendAck(batch_size=len(rows), written=written, duplicates=len(rows) - written)
        if ack.duplicates:
            logger.warning(
                "{duplicates} of {count} records already in the log were left unchanged",
                duplicates=ack.duplicates,
                count=len(rows),
            )
        logger.debug("Appended {written} records", written=written)
        return ack

    async def get_record(self, record_id: str) -> Optional[dict[str, Any]]:
        """Serialized record stored under ``record_id``, or None"""
        if not self._reader:
            raise RuntimeError("Database not connected")

        async with self._reader.execute(
            "SELECT record FROM operation_logs WHERE id = ?",
            (record_id,),
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None
        return decode_record(row["record"])

    async def get(self, record_id: str) -> Optional[Origin]:
        """Origin stored under ``record_id``, or None"""
        record = await self.get_record(record_id)
        if record is None:
            return None
        return Origin.from_record(record)

    async def has(self, record_id: str) -> bool:
        if not self._reader:
            raise RuntimeError("Database not connected")

        async with self._reader.execute(
            "SELECT 1 FROM operation_logs WHERE id = ? LIMIT 1",
            (record_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return row is not None

    async def count(self) -> int:
        if not self._reader:
            raise RuntimeError("Database not connected")

        async with self._reader.execute("SELECT COUNT(*) FROM operation_logs") as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_stats(self) -> dict[str, Any]:
        """Record count and on-disk size"""
        size = sum(
            path.stat().st_size
            for path in self.db_path.parent.glob(f"{self.db_path.name}*")
            if path.is_file()
        )
        return {
            "total_records": await self.count(),
            "size_mb": round(size / 1024 / 1024, 2),
        }
