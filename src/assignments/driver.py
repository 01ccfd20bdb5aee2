"""SchedulerDriver — APScheduler lifecycle for the two assignment timers."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.assignments.poster import PostingPipeline
    from src.assignments.service import AssignmentService

logger = logging.getLogger(__name__)

MATERIALIZE_JOB_ID = "materialize-occurrences"
POST_JOB_ID = "post-due-occurrences"

STATE_IDLE = "idle"
STATE_RUNNING = "running"


class _Timer:
    """One periodic job with an ``idle -> running -> idle`` state machine.

    A run that is requested while the previous one is still in flight is
    skipped, so the body never runs concurrently with itself.
    """

    def __init__(self, name: str, body: Callable[[], Awaitable[object]]) -> None:
        self.name = name
        self._body = body
        self._lock = asyncio.Lock()
        self.runs = 0
        self.skipped = 0

    @property
    def state(self) -> str:
        return STATE_RUNNING if self._lock.locked() else STATE_IDLE

    async def run(self) -> bool:
        """Run the body once. Returns False if a run was already in flight."""
        if self._lock.locked():
            self.skipped += 1
            logger.warning("%s still running, skipping this tick", self.name)
            return False
        async with self._lock:
            try:
                await self._body()
            except Exception:
                logger.exception("%s run failed", self.name)
            finally:
                self.runs += 1
        return True

    async def wait_idle(self) -> None:
        """Block until any in-flight run has finished."""
        async with self._lock:
            pass


class SchedulerDriver:
    """Runs materialization and posting on independent interval timers.

    Args:
        service: AssignmentService whose ``materialize_all`` refreshes the
            rolling lookahead window.
        pipeline: PostingPipeline whose ``post_due`` posts due occurrences.
        timezone: IANA timezone for the scheduler (default from settings).
        materialize_minutes: Materialization cadence (default from settings).
        post_minutes: Posting cadence (default from settings).
    """

    def __init__(
        self,
        service: AssignmentService,
        pipeline: PostingPipeline,
        timezone: str | None = None,
        materialize_minutes: int | None = None,
        post_minutes: int | None = None,
    ) -> None:
        self._service = service
        self._pipeline = pipeline
        self._timezone = timezone or settings.institution_timezone
        self._materialize_minutes = materialize_minutes or settings.materialize_interval_minutes
        self._post_minutes = post_minutes or settings.post_interval_minutes
        self._materializer = _Timer("Materialization", service.materialize_all)
        self._poster = _Timer("Posting", pipeline.post_due)
        self._scheduler: AsyncIOScheduler | None = None
        self._kickoff: list[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def materialize_state(self) -> str:
        return self._materializer.state

    @property
    def post_state(self) -> str:
        return self._poster.state

    # -- Lifecycle -------------------------------------------------------------

    async def start(self, run_immediately: bool = False) -> None:
        """Register both interval jobs and start the scheduler.

        With *run_immediately*, one materialization pass and one posting pass
        are launched right away instead of waiting for the first tick.
        """
        if self._running:
            return
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._scheduler.add_job(
            self.run_materialization,
            trigger=IntervalTrigger(minutes=self._materialize_minutes, timezone=self._timezone),
            id=MATERIALIZE_JOB_ID,
            name="Materialize upcoming occurrences",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.add_job(
            self.run_posting,
            trigger=IntervalTrigger(minutes=self._post_minutes, timezone=self._timezone),
            id=POST_JOB_ID,
            name="Post due occurrences",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Scheduler driver started (materialize every %dm, post every %dm, tz=%s)",
            self._materialize_minutes,
            self._post_minutes,
            self._timezone,
        )
        if run_immediately:
            self._kickoff = [
                asyncio.ensure_future(self.run_materialization()),
                asyncio.ensure_future(self.run_posting()),
            ]

    async def stop(self) -> None:
        """Stop ticking and wait for in-flight runs to finish."""
        if not self._running:
            return
        # Shutting down cancels in-flight jobs, so pause and drain first
        if self._scheduler is not None:
            self._scheduler.pause()
        self._running = False
        if self._kickoff:
            await asyncio.gather(*self._kickoff, return_exceptions=True)
            self._kickoff = []
        # A job dispatched just before the pause takes its timer's lock on the next loop pass
        await asyncio.sleep(0)
        await self._materializer.wait_idle()
        await self._poster.wait_idle()
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("Scheduler driver stopped")

    # -- Runs ------------------------------------------------------------------

    async def run_materialization(self) -> bool:
        """Run one materialization pass unless one is already running."""
        return await self._materializer.run()

    async def run_posting(self) -> bool:
        """Run one posting pass unless one is already running."""
        return await self._poster.run()
