"""Async SQLite store for rendered batch result files."""

import logging
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS batch_results (
    result_key TEXT PRIMARY KEY,
    content BLOB NOT NULL,
    stored_at TEXT NOT NULL
);
"""


class BatchResultRepository:
    """Key/value blob store; a new result for a key replaces the previous one."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def initialize(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(CREATE_TABLE_SQL)
            await db.commit()
        logger.info("BatchResultRepository initialized at %s", self.db_path)

    async def put(self, key: str, content: bytes) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO batch_results (result_key, content, stored_at) "
                "VALUES (?, ?, ?) "
                "ON CONFLICT(result_key) DO UPDATE SET "
                "content = excluded.content, stored_at = excluded.stored_at",
                (key, content, datetime.now(timezone.utc).isoformat()),
            )
            await db.commit()
        logger.info("Stored batch result %s (%d bytes)", key, len(content))

    async def get(self, key: str) -> Optional[bytes]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT content FROM batch_results WHERE result_key = ?", (key,)
            )
            row = await cursor.fetchone()
        return bytes(row[0]) if row else None
