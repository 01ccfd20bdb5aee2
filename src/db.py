"""Async SQLite connection helpers over aiosqlite.

Every store opens a short-lived connection per operation.  The target file is
``settings.database_path`` unless an explicit path is given (test isolation).
Connections run with WAL journaling and a busy timeout so the materialization
and posting timers can write to the same file without tripping over each
other.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


async def get_connection(local_path_override: Path | None = None) -> aiosqlite.Connection:
    """Return an open aiosqlite connection.

    If *local_path_override* is given it takes priority over
    ``settings.database_path``.
    """
    path = local_path_override or settings.database_path
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA busy_timeout=5000")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


@asynccontextmanager
async def transaction(db: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """Run the enclosed statements as one write transaction.

    Commits when the block exits normally and rolls back on any exception,
    which is re-raised.  ``BEGIN IMMEDIATE`` takes the write lock up front so
    the read-then-write sequence inside the block sees a stable row state.
    """
    await db.execute("BEGIN IMMEDIATE")
    try:
        yield db
    except BaseException:
        await db.rollback()
        raise
    else:
        await db.commit()
