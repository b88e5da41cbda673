"""Async SQLite repository for expert tickets.

Uses aiosqlite for non-blocking database access in the async API.
Timestamps are stored as ISO-8601 text in UTC.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite
from faqdesk.models.ticket import Ticket, TicketCreate, TicketStatus

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS tickets (
    ticket_id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'open'
        CHECK(status IN ('open', 'closed')),
    title TEXT NOT NULL,
    description TEXT,
    requester_name TEXT NOT NULL DEFAULT '',
    requester_user_principal_name TEXT,
    requester_given_name TEXT,
    requester_object_id TEXT,
    requester_conversation_id TEXT NOT NULL,
    user_question TEXT,
    knowledge_base_answer TEXT,
    sme_card_activity_id TEXT,
    sme_thread_conversation_id TEXT,
    assigned_to_name TEXT,
    assigned_to_object_id TEXT,
    date_created TEXT NOT NULL,
    date_assigned TEXT,
    date_closed TEXT,
    last_modified_by_name TEXT,
    last_modified_by_object_id TEXT,
    CHECK(LENGTH(title) <= 250)
);
"""

CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_tickets_status ON tickets(status);",
    "CREATE INDEX IF NOT EXISTS idx_tickets_date_created ON tickets(date_created);",
]

TICKET_COLUMNS = [
    "ticket_id",
    "status",
    "title",
    "description",
    "requester_name",
    "requester_user_principal_name",
    "requester_given_name",
    "requester_object_id",
    "requester_conversation_id",
    "user_question",
    "knowledge_base_answer",
    "sme_card_activity_id",
    "sme_thread_conversation_id",
    "assigned_to_name",
    "assigned_to_object_id",
    "date_created",
    "date_assigned",
    "date_closed",
    "last_modified_by_name",
    "last_modified_by_object_id",
]

DATETIME_COLUMNS = ("date_created", "date_assigned", "date_closed")

# Messaging extension search commands
SEARCH_RECENT = "recents"
SEARCH_OPEN = "openrequests"
SEARCH_ASSIGNED = "assignedrequests"


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-formatted datetime string."""
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _row_to_ticket(row: aiosqlite.Row) -> Ticket:
    """Convert an aiosqlite Row to a Ticket model."""
    d = dict(row)
    for column in DATETIME_COLUMNS:
        d[column] = _parse_datetime(d.get(column))
    return Ticket(**d)


class TicketRepository:
    """Async repository for ticket storage."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create the table and indices if not present."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(CREATE_TABLE_SQL)
            for idx_sql in CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("TicketRepository initialized at %s", self.db_path)

    async def create(self, data: TicketCreate) -> Ticket:
        """Insert a new open ticket with a store-assigned id."""
        ticket = Ticket(
            ticket_id=str(uuid.uuid4()),
            status=TicketStatus.OPEN,
            date_created=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        await self.upsert(ticket)
        return ticket

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM tickets WHERE ticket_id = ?", (ticket_id,)
            )
            row = await cursor.fetchone()
        return _row_to_ticket(row) if row else None

    async def upsert(self, ticket: Ticket) -> None:
        """Insert or fully replace a ticket row."""
        data = ticket.model_dump()
        values = []
        for column in TICKET_COLUMNS:
            value = data[column]
            if column in DATETIME_COLUMNS:
                value = _format_datetime(value)
            elif column == "status":
                value = ticket.status.value
            values.append(value)

        placeholders = ", ".join("?" for _ in TICKET_COLUMNS)
        updates = ", ".join(
            f"{column} = excluded.{column}"
            for column in TICKET_COLUMNS
            if column != "ticket_id"
        )
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                f"INSERT INTO tickets ({', '.join(TICKET_COLUMNS)}) "
                f"VALUES ({placeholders}) "
                f"ON CONFLICT(ticket_id) DO UPDATE SET {updates}",
                values,
            )
            await db.commit()

    async def search(
        self,
        command_id: str,
        search_text: str = "",
        count: int = 25,
        skip: int = 0,
    ) -> List[Ticket]:
        """Search tickets for the messaging extension tabs.

        Args:
            command_id: One of "recents", "openrequests", "assignedrequests"
            search_text: Optional text matched against title, description and requester
            count: Page size
            skip: Number of results to skip

        Returns:
            Matching tickets, newest first
        """
        clauses: List[str] = []
        params: List[object] = []
        if command_id == SEARCH_OPEN:
            clauses.append("status = 'open' AND assigned_to_object_id IS NULL")
        elif command_id == SEARCH_ASSIGNED:
            clauses.append("status = 'open' AND assigned_to_object_id IS NOT NULL")
        if search_text.strip():
            like = f"%{search_text.strip().lower()}%"
            clauses.append(
                "(LOWER(title) LIKE ? OR LOWER(COALESCE(description, '')) LIKE ? "
                "OR LOWER(requester_name) LIKE ?)"
            )
            params.extend([like, like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([max(count, 0), max(skip, 0)])
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT * FROM tickets {where} "
                "ORDER BY date_created DESC LIMIT ? OFFSET ?",
                params,
            )
            rows = await cursor.fetchall()
        return [_row_to_ticket(row) for row in rows]
