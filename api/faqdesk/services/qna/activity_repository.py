"""Async SQLite index from announcement reference ids to card activity ids."""

import logging
from typing import Optional

import aiosqlite
from faqdesk.models.qna import ActivityEntity

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS qna_activities (
    activity_reference_id TEXT PRIMARY KEY,
    activity_id TEXT NOT NULL
);
"""


class ActivityRepository:
    """Remembers which card announced each knowledge base pair."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def initialize(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(CREATE_TABLE_SQL)
            await db.commit()
        logger.info("ActivityRepository initialized at %s", self.db_path)

    async def add(self, reference_id: str, activity_id: str) -> bool:
        """Index an announcement; returns False when the id is already taken."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO qna_activities "
                "(activity_reference_id, activity_id) VALUES (?, ?)",
                (reference_id, activity_id),
            )
            await db.commit()
            added = cursor.rowcount == 1
        if not added:
            logger.warning("Activity reference %s already indexed", reference_id)
        return added

    async def get_by_reference(self, reference_id: str) -> Optional[str]:
        """Activity id of the card announced under a reference id."""
        entity = await self.get_entity(reference_id)
        return entity.activity_id if entity else None

    async def get_entity(self, reference_id: str) -> Optional[ActivityEntity]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT activity_reference_id, activity_id FROM qna_activities "
                "WHERE activity_reference_id = ?",
                (reference_id,),
            )
            row = await cursor.fetchone()
        return ActivityEntity(**dict(row)) if row else None
