"""PostedTaskStore — the live homework tasks students see.

Only the write path the posting pipeline needs lives here; the wider task
system (grading, submissions) belongs to the surrounding application.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.assignments.models import PostedTask, to_utc_iso, utc_now
from src.assignments.store import SQLiteStore

if TYPE_CHECKING:
    import aiosqlite

    from src.assignments.models import DueOccurrence

logger = logging.getLogger(__name__)

TASK_TYPE_HOMEWORK = "homework"

_TASK_COLUMNS = (
    "id, occurrence_id, course_id, title, description, task_type, due_date, created_at"
)


class PostedTaskStore(SQLiteStore):
    """Creates and reads tasks produced from posted occurrences."""

    _instance: PostedTaskStore | None = None

    async def create_task(self, db: aiosqlite.Connection, due: DueOccurrence) -> int:
        """Insert the task for *due* on the caller's transaction. Returns its ID."""
        cursor = await db.execute(
            """
            INSERT INTO tasks
                (occurrence_id, course_id, title, description, task_type, due_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                due.occurrence_id,
                due.course_id,
                due.title,
                due.description,
                TASK_TYPE_HOMEWORK,
                to_utc_iso(due.publish_at),
                utc_now().isoformat(),
            ),
        )
        return cursor.lastrowid

    async def list_for_course(self, course_id: str) -> list[PostedTask]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE course_id = ? ORDER BY due_date, id",
                (course_id,),
            )
            rows = await cursor.fetchall()
            return [PostedTask.from_row(row) for row in rows]
        finally:
            await db.close()

    async def get_for_occurrence(self, occurrence_id: int) -> PostedTask | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE occurrence_id = ?",
                (occurrence_id,),
            )
            row = await cursor.fetchone()
            return PostedTask.from_row(row) if row else None
        finally:
            await db.close()
