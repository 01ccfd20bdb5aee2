"""OccurrenceStore — the durable ledger of materialized occurrences.

``(template_id, publish_at)`` is unique.  Materialization only ever inserts
rows (and never touches an existing one); posting only moves a row from
``scheduled`` to ``posted``.  Those two rules let both timers share the table
without further coordination.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.assignments.models import (
    OCCURRENCE_STATUSES,
    STATUS_POSTED,
    STATUS_SCHEDULED,
    DueOccurrence,
    Occurrence,
    StudentOccurrence,
    to_utc_iso,
    utc_now,
)
from src.assignments.store import SQLiteStore

if TYPE_CHECKING:
    from datetime import datetime

    import aiosqlite

logger = logging.getLogger(__name__)

_OCCURRENCE_COLUMNS = "id, template_id, publish_at, status, created_at, posted_at"


class OccurrenceStore(SQLiteStore):
    """Persists occurrences and answers the posting and student queries."""

    _instance: OccurrenceStore | None = None

    async def connect(self) -> aiosqlite.Connection:
        """Open a connection for a caller-managed transaction."""
        return await self._connect()

    # -- Materialization side --------------------------------------------------

    async def exists(self, template_id: str, publish_at: datetime) -> bool:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT 1 FROM occurrences WHERE template_id = ? AND publish_at = ?",
                (template_id, to_utc_iso(publish_at)),
            )
            return await cursor.fetchone() is not None
        finally:
            await db.close()

    async def upsert(self, template_id: str, publish_at: datetime, status: str) -> bool:
        """Insert the occurrence unless its key already exists.

        An existing row is left untouched whatever its status.  Returns True
        if a row was created.
        """
        if status not in OCCURRENCE_STATUSES:
            msg = f"Unknown occurrence status: {status}"
            raise ValueError(msg)
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                INSERT INTO occurrences (template_id, publish_at, status, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (template_id, publish_at) DO NOTHING
                """,
                (template_id, to_utc_iso(publish_at), status, utc_now().isoformat()),
            )
            await db.commit()
            created = cursor.rowcount > 0
            if created:
                logger.debug(
                    "Created occurrence template=%s publish_at=%s status=%s",
                    template_id,
                    to_utc_iso(publish_at),
                    status,
                )
            return created
        finally:
            await db.close()

    # -- Posting side ----------------------------------------------------------

    async def list_due(self, now: datetime) -> list[DueOccurrence]:
        """Return scheduled occurrences at or before *now* with their template."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT o.id, o.template_id, o.publish_at,
                       t.teacher_id, t.course_id, t.title, t.description
                FROM occurrences o
                JOIN templates t ON o.template_id = t.id
                WHERE o.status = ? AND o.publish_at <= ?
                ORDER BY o.publish_at, o.id
                """,
                (STATUS_SCHEDULED, to_utc_iso(now)),
            )
            rows = await cursor.fetchall()
            return [DueOccurrence.from_row(row) for row in rows]
        finally:
            await db.close()

    async def mark_posted(self, db: aiosqlite.Connection, occurrence_id: int) -> bool:
        """Move an occurrence from scheduled to posted on the caller's transaction.

        *db* must be inside :func:`src.db.transaction` together with the
        matching task insert.  Returns False if the occurrence was not in
        ``scheduled`` state (already posted, or unknown), in which case the
        caller must roll back.
        """
        cursor = await db.execute(
            "UPDATE occurrences SET status = ?, posted_at = ? WHERE id = ? AND status = ?",
            (STATUS_POSTED, utc_now().isoformat(), occurrence_id, STATUS_SCHEDULED),
        )
        return cursor.rowcount > 0

    # -- Reads -----------------------------------------------------------------

    async def get_occurrence(self, occurrence_id: int) -> Occurrence | None:
        """Fetch an occurrence by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_OCCURRENCE_COLUMNS} FROM occurrences WHERE id = ?",
                (occurrence_id,),
            )
            row = await cursor.fetchone()
            return Occurrence.from_row(row) if row else None
        finally:
            await db.close()

    async def list_for_template(self, template_id: str) -> list[Occurrence]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_OCCURRENCE_COLUMNS} FROM occurrences"
                " WHERE template_id = ? ORDER BY publish_at",
                (template_id,),
            )
            rows = await cursor.fetchall()
            return [Occurrence.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_student_visible(self, course_id: str) -> list[StudentOccurrence]:
        """Return the scheduled and posted occurrences of a course, oldest first.

        ``skipped-holiday`` rows are never exposed here.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT o.id, t.title, t.description, o.publish_at, o.status
                FROM occurrences o
                JOIN templates t ON o.template_id = t.id
                WHERE t.course_id = ? AND o.status IN (?, ?)
                ORDER BY o.publish_at, o.id
                """,
                (course_id, STATUS_SCHEDULED, STATUS_POSTED),
            )
            rows = await cursor.fetchall()
            return [StudentOccurrence.from_row(row) for row in rows]
        finally:
            await db.close()
