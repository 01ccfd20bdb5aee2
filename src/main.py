"""Assignment scheduler entry point."""

import asyncio
import contextlib
import logging
import signal

from src.assignments.driver import SchedulerDriver
from src.assignments.occurrences import OccurrenceStore
from src.assignments.poster import PostingPipeline
from src.assignments.service import AssignmentService
from src.assignments.store import RecurrenceStore, TemplateStore
from src.assignments.tasks import PostedTaskStore
from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_driver() -> SchedulerDriver:
    """Wire the stores, service, pipeline and driver from settings."""
    occurrences = OccurrenceStore.get()
    service = AssignmentService(
        recurrences=RecurrenceStore.get(),
        templates=TemplateStore.get(),
        occurrences=occurrences,
        timezone=settings.institution_timezone,
        lookahead=settings.lookahead_count,
        max_scan_days=settings.max_scan_days,
    )
    pipeline = PostingPipeline(occurrences=occurrences, tasks=PostedTaskStore.get())
    return SchedulerDriver(service=service, pipeline=pipeline)


async def run() -> None:
    """Start the driver and keep it running until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    driver = build_driver()
    await driver.start(run_immediately=True)
    try:
        await stop_event.wait()
    finally:
        logger.info("Stopping assignment scheduler...")
        await driver.stop()


def main() -> None:
    logger.info(
        "Starting assignment scheduler (db=%s, tz=%s)",
        settings.database_path,
        settings.institution_timezone,
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
