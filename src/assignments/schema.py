"""SQLite schema for recurrences, templates, occurrences and posted tasks."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import aiosqlite

_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS recurrences (
        teacher_id     TEXT NOT NULL,
        course_id      TEXT NOT NULL,
        weekdays       TEXT NOT NULL,
        publish_time   TEXT NOT NULL,
        is_paused      INTEGER NOT NULL DEFAULT 0,
        holiday_ranges TEXT NOT NULL DEFAULT '[]',
        updated_at     TEXT NOT NULL,
        PRIMARY KEY (teacher_id, course_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS templates (
        id          TEXT PRIMARY KEY,
        teacher_id  TEXT NOT NULL,
        course_id   TEXT NOT NULL,
        title       TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        attachments TEXT NOT NULL DEFAULT '[]',
        active      INTEGER NOT NULL DEFAULT 1,
        start_date  TEXT,
        end_date    TEXT,
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_templates_teacher_course
        ON templates (teacher_id, course_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS occurrences (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        template_id TEXT NOT NULL REFERENCES templates (id),
        publish_at  TEXT NOT NULL,
        status      TEXT NOT NULL
            CHECK (status IN ('scheduled', 'skipped-holiday', 'posted')),
        created_at  TEXT NOT NULL,
        posted_at   TEXT,
        UNIQUE (template_id, publish_at)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_occurrences_due
        ON occurrences (status, publish_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id            INTEGER PRIMARY KEY AUTOINCREMENT,
        occurrence_id INTEGER NOT NULL UNIQUE REFERENCES occurrences (id),
        course_id     TEXT NOT NULL,
        title         TEXT NOT NULL,
        description   TEXT NOT NULL DEFAULT '',
        task_type     TEXT NOT NULL DEFAULT 'homework',
        due_date      TEXT NOT NULL,
        created_at    TEXT NOT NULL
    )
    """,
)


async def ensure_schema(db: aiosqlite.Connection) -> None:
    """Create every table and index that does not exist yet."""
    for statement in _STATEMENTS:
        await db.execute(statement)
    await db.commit()
