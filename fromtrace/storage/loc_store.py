"""SQLite store of recorded code locations"""

from pathlib import Path
from typing import Mapping, Optional, Union

import aiosqlite
from loguru import logger

from fromtrace.core.models import SourceLocation


class LocStore:
    """
    Maps the code location ids recorded on Origins to source positions.

    Written by whatever instruments the code, read by ``LocStoreResolver``.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = Path(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.db_path))
        await self._conn.execute("""
            CREATE TABLE IF NOT EXISTS locs (
                id TEXT PRIMARY KEY,
                loc TEXT NOT NULL
            )
        """)
        await self._conn.commit()
        logger.info(f"Connected to location store: {self.db_path}")

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def write(self, locs: Mapping[str, SourceLocation]) -> None:
        """Store locations keyed by code location id"""
        if not self._conn:
            raise RuntimeError("Database not connected")

        await self._conn.executemany(
            "INSERT OR REPLACE INTO locs (id, loc) VALUES (?, ?)",
            [(loc_id, loc.model_dump_json()) for loc_id, loc in locs.items()],
        )
        await self._conn.commit()
        logger.debug("Stored {count} locations", count=len(locs))

    async def get_loc(self, loc_id: str) -> Optional[SourceLocation]:
        if not self._conn:
            raise RuntimeError("Database not connected")

        async with self._conn.execute("SELECT loc FROM locs WHERE id = ?", (loc_id,)) as cursor:
            row = await cursor.fetchone()
        if not row:
            return None
        return SourceLocation.model_validate_json(row[0])
