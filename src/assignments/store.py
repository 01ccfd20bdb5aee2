"""RecurrenceStore and TemplateStore — aiosqlite CRUD for teacher settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self

from src.assignments.models import Recurrence, Template, utc_now
from src.assignments.schema import ensure_schema
from src.db import get_connection

if TYPE_CHECKING:
    from pathlib import Path

    import aiosqlite

logger = logging.getLogger(__name__)

_RECURRENCE_COLUMNS = (
    "teacher_id, course_id, weekdays, publish_time, is_paused, holiday_ranges, updated_at"
)
_TEMPLATE_COLUMNS = (
    "id, teacher_id, course_id, title, description, attachments, active,"
    " start_date, end_date, created_at, updated_at"
)


class SQLiteStore:
    """Shared connection handling for the assignment stores.

    Each subclass is a singleton accessed via ``get()``.  Pass an explicit
    *db_path* for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: Any = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> Self:
        """Return the shared instance of this store."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> aiosqlite.Connection:
        db = await get_connection(local_path_override=self._db_path)
        if not self._initialised:
            await ensure_schema(db)
            self._initialised = True
        return db


class RecurrenceStore(SQLiteStore):
    """Persists one weekly recurrence per (teacher, course)."""

    _instance: RecurrenceStore | None = None

    async def save(self, recurrence: Recurrence) -> Recurrence:
        """Insert or replace the recurrence for its (teacher, course) pair."""
        recurrence.updated_at = utc_now().isoformat()
        db = await self._connect()
        try:
            await db.execute(
                f"""
                INSERT INTO recurrences ({_RECURRENCE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (teacher_id, course_id) DO UPDATE SET
                    weekdays = excluded.weekdays,
                    publish_time = excluded.publish_time,
                    is_paused = excluded.is_paused,
                    holiday_ranges = excluded.holiday_ranges,
                    updated_at = excluded.updated_at
                """,
                recurrence.to_row(),
            )
            await db.commit()
            logger.info(
                "Saved recurrence for teacher=%s course=%s (%s at %s, paused=%s)",
                recurrence.teacher_id,
                recurrence.course_id,
                ",".join(recurrence.weekdays),
                recurrence.publish_time.strftime("%H:%M"),
                recurrence.is_paused,
            )
            return recurrence
        finally:
            await db.close()

    async def get_recurrence(self, teacher_id: str, course_id: str) -> Recurrence | None:
        """Fetch the recurrence of a pair, or None if not found.

        Raises ValueError when the stored row is malformed.
        """
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_RECURRENCE_COLUMNS} FROM recurrences"
                " WHERE teacher_id = ? AND course_id = ?",
                (teacher_id, course_id),
            )
            row = await cursor.fetchone()
            return Recurrence.from_row(row) if row else None
        finally:
            await db.close()

    async def set_paused(self, teacher_id: str, course_id: str, is_paused: bool) -> bool:
        """Flip the pause flag. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE recurrences SET is_paused = ?, updated_at = ?"
                " WHERE teacher_id = ? AND course_id = ?",
                (int(is_paused), utc_now().isoformat(), teacher_id, course_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info(
                    "Recurrence teacher=%s course=%s paused=%s",
                    teacher_id,
                    course_id,
                    is_paused,
                )
            return updated
        finally:
            await db.close()

    async def list_active_pairs(self) -> list[tuple[str, str]]:
        """Return every (teacher_id, course_id) whose recurrence is not paused."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT teacher_id, course_id FROM recurrences"
                " WHERE is_paused = 0 ORDER BY teacher_id, course_id"
            )
            rows = await cursor.fetchall()
            return [(row[0], row[1]) for row in rows]
        finally:
            await db.close()


class TemplateStore(SQLiteStore):
    """Persists recurring assignment templates."""

    _instance: TemplateStore | None = None

    async def add_template(self, template: Template) -> Template:
        """Insert a new template. Returns the same template object."""
        db = await self._connect()
        try:
            await db.execute(
                f"INSERT INTO templates ({_TEMPLATE_COLUMNS})"
                " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                template.to_row(),
            )
            await db.commit()
            logger.info("Added template: %s (%s)", template.title, template.id)
            return template
        finally:
            await db.close()

    async def get_template(self, template_id: str) -> Template | None:
        """Fetch a template by ID, or None if not found."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TEMPLATE_COLUMNS} FROM templates WHERE id = ?", (template_id,)
            )
            row = await cursor.fetchone()
            return Template.from_row(row) if row else None
        finally:
            await db.close()

    async def update_template(self, template: Template) -> bool:
        """Write back every mutable field. Returns True if a row was updated."""
        template.updated_at = utc_now().isoformat()
        row = template.to_row()
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                UPDATE templates SET
                    title = ?, description = ?, attachments = ?, active = ?,
                    start_date = ?, end_date = ?, updated_at = ?
                WHERE id = ? AND teacher_id = ?
                """,
                (*row[3:9], row[10], template.id, template.teacher_id),
            )
            await db.commit()
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Updated template: %s (%s)", template.title, template.id)
            return updated
        finally:
            await db.close()

    async def list_templates(self, teacher_id: str, course_id: str) -> list[Template]:
        """Return all templates of a pair, newest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TEMPLATE_COLUMNS} FROM templates"
                " WHERE teacher_id = ? AND course_id = ? ORDER BY created_at DESC",
                (teacher_id, course_id),
            )
            rows = await cursor.fetchall()
            return [Template.from_row(row) for row in rows]
        finally:
            await db.close()

    async def list_active_templates(self, teacher_id: str, course_id: str) -> list[Template]:
        """Return the active templates of a pair, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_TEMPLATE_COLUMNS} FROM templates"
                " WHERE teacher_id = ? AND course_id = ? AND active = 1"
                " ORDER BY created_at",
                (teacher_id, course_id),
            )
            rows = await cursor.fetchall()
            return [Template.from_row(row) for row in rows]
        finally:
            await db.close()
