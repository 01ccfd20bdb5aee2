"""PostingPipeline — promotes due occurrences into live tasks."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from src.assignments.models import utc_now
from src.db import transaction

if TYPE_CHECKING:
    from src.assignments.models import DueOccurrence
    from src.assignments.occurrences import OccurrenceStore
    from src.assignments.tasks import PostedTaskStore

logger = logging.getLogger(__name__)


class OccurrenceAlreadyPostedError(Exception):
    """The occurrence left ``scheduled`` state before this run could post it."""


@dataclass
class PostingResult:
    """Counts from one pass of the pipeline."""

    posted: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.posted + self.skipped + self.failed


class PostingPipeline:
    """Posts every due occurrence, one transaction per occurrence.

    Args:
        occurrences: OccurrenceStore for the due scan and the status change.
        tasks: PostedTaskStore that writes the live task.
        clock: Returns the current aware datetime (defaults to UTC now).
    """

    def __init__(
        self,
        occurrences: OccurrenceStore,
        tasks: PostedTaskStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._occurrences = occurrences
        self._tasks = tasks
        self._clock = clock

    async def post_due(self) -> PostingResult:
        """Post everything due as of now. A failing occurrence never stops the batch."""
        now = self._clock()
        due = await self._occurrences.list_due(now)
        result = PostingResult()
        if not due:
            logger.debug("No due occurrences at %s", now.isoformat())
            return result

        logger.info("Posting %d due occurrence(s)", len(due))
        for occurrence in due:
            try:
                task_id = await self.post_one(occurrence)
            except OccurrenceAlreadyPostedError:
                logger.info(
                    "Occurrence %s already posted, skipping", occurrence.occurrence_id
                )
                result.skipped += 1
            except Exception:
                logger.exception(
                    "Posting occurrence %s ('%s', course=%s) failed",
                    occurrence.occurrence_id,
                    occurrence.title,
                    occurrence.course_id,
                )
                result.failed += 1
            else:
                logger.info(
                    "Posted occurrence %s as task %s: '%s' (course=%s)",
                    occurrence.occurrence_id,
                    task_id,
                    occurrence.title,
                    occurrence.course_id,
                )
                result.posted += 1

        logger.info(
            "Posting pass done: %d of %d posted, %d skipped, %d failed",
            result.posted,
            result.total,
            result.skipped,
            result.failed,
        )
        return result

    async def post_one(self, occurrence: DueOccurrence) -> int:
        """Create the task and mark the occurrence posted, atomically.

        Returns the new task ID.  Raises OccurrenceAlreadyPostedError when the
        occurrence is no longer scheduled; any other failure rolls both writes
        back and propagates.
        """
        db = await self._occurrences.connect()
        try:
            async with transaction(db):
                marked = await self._occurrences.mark_posted(db, occurrence.occurrence_id)
                if not marked:
                    msg = f"Occurrence {occurrence.occurrence_id} is not scheduled"
                    raise OccurrenceAlreadyPostedError(msg)
                return await self._tasks.create_task(db, occurrence)
        finally:
            await db.close()
