"""AssignmentService — the operations the course application calls.

Teacher-facing settings (recurrence, templates), the read-only preview, the
student occurrence list, and the per-pair materialization the scheduler
driver runs on a timer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from src.assignments.materializer import (
    DEFAULT_LOOKAHEAD,
    DEFAULT_MAX_SCAN_DAYS,
    materialize_recurrence,
)
from src.assignments.models import Recurrence, Template, make_template_id, utc_now
from src.assignments.params import (
    TEMPLATE_UPDATABLE_FIELDS,
    RecurrenceParams,
    TemplateParams,
)

if TYPE_CHECKING:
    from datetime import tzinfo

    from src.assignments.models import PlannedOccurrence, StudentOccurrence
    from src.assignments.occurrences import OccurrenceStore
    from src.assignments.store import RecurrenceStore, TemplateStore

logger = logging.getLogger(__name__)


class AssignmentService:
    """Facade over the stores and the materializer.

    Args:
        recurrences: RecurrenceStore for weekly rules.
        templates: TemplateStore for assignment definitions.
        occurrences: OccurrenceStore, the idempotent occurrence ledger.
        timezone: The institution's IANA zone (or a tzinfo).
        clock: Returns the current aware datetime (defaults to UTC now).
        lookahead: Occurrences to materialize per template.
        max_scan_days: Calendar days scanned per template before giving up.
    """

    def __init__(
        self,
        recurrences: RecurrenceStore,
        templates: TemplateStore,
        occurrences: OccurrenceStore,
        timezone: tzinfo | str,
        clock: Callable[[], datetime] = utc_now,
        lookahead: int = DEFAULT_LOOKAHEAD,
        max_scan_days: int = DEFAULT_MAX_SCAN_DAYS,
    ) -> None:
        self._recurrences = recurrences
        self._templates = templates
        self._occurrences = occurrences
        self._timezone = timezone
        self._clock = clock
        self._lookahead = lookahead
        self._max_scan_days = max_scan_days

    # -- Recurrence ------------------------------------------------------------

    async def save_recurrence(
        self,
        teacher_id: str,
        course_id: str,
        weekdays: Any,
        publish_time: Any,
        is_paused: bool = False,
        holiday_ranges: list[Any] | None = None,
    ) -> Recurrence:
        """Validate and upsert a pair's recurrence, then materialize the pair.

        Raises pydantic.ValidationError for missing or malformed settings.  A
        failure in the follow-up materialization is logged; the save stands.
        """
        params = RecurrenceParams(
            weekdays=weekdays,
            publish_time=publish_time,
            is_paused=is_paused,
            holiday_ranges=holiday_ranges or [],
        )
        recurrence = await self._recurrences.save(
            Recurrence(
                teacher_id=teacher_id,
                course_id=course_id,
                weekdays=params.weekdays,
                publish_time=params.publish_time,
                is_paused=params.is_paused,
                holiday_ranges=params.holiday_ranges,
            )
        )
        await self.materialize_pair(teacher_id, course_id)
        return recurrence

    async def get_recurrence(self, teacher_id: str, course_id: str) -> Recurrence | None:
        return await self._recurrences.get_recurrence(teacher_id, course_id)

    async def set_paused(
        self, teacher_id: str, course_id: str, is_paused: bool
    ) -> Recurrence | None:
        """Pause or resume a pair. Returns the updated recurrence, or None."""
        if not await self._recurrences.set_paused(teacher_id, course_id, is_paused):
            return None
        if not is_paused:
            await self.materialize_pair(teacher_id, course_id)
        return await self._recurrences.get_recurrence(teacher_id, course_id)

    # -- Templates -------------------------------------------------------------

    async def create_template(
        self,
        teacher_id: str,
        course_id: str,
        title: str,
        description: str = "",
        attachments: list[Any] | None = None,
        active: bool = True,
        start_date: Any = None,
        end_date: Any = None,
    ) -> Template:
        """Validate and persist a new template."""
        params = TemplateParams(
            title=title,
            description=description,
            attachments=attachments,
            active=active,
            start_date=start_date,
            end_date=end_date,
        )
        template = Template(
            id=make_template_id(),
            teacher_id=teacher_id,
            course_id=course_id,
            **params.model_dump(),
        )
        return await self._templates.add_template(template)

    async def update_template(
        self, template_id: str, teacher_id: str, /, **changes: Any
    ) -> Template | None:
        """Apply *changes* to a template owned by *teacher_id*.

        Returns the updated template, or None if it does not exist or belongs
        to another teacher.  Raises ValueError for unknown fields and
        pydantic.ValidationError for invalid values.
        """
        unknown = set(changes) - TEMPLATE_UPDATABLE_FIELDS
        if unknown:
            msg = f"Template fields cannot be updated: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        template = await self._templates.get_template(template_id)
        if template is None or template.teacher_id != teacher_id:
            return None

        current = {name: getattr(template, name) for name in TEMPLATE_UPDATABLE_FIELDS}
        params = TemplateParams(**{**current, **changes})
        for name, value in params.model_dump().items():
            setattr(template, name, value)

        if not await self._templates.update_template(template):
            return None
        return template

    async def list_templates(self, teacher_id: str, course_id: str) -> list[Template]:
        return await self._templates.list_templates(teacher_id, course_id)

    # -- Materialization -------------------------------------------------------

    async def preview_occurrences(
        self, teacher_id: str, course_id: str
    ) -> list[PlannedOccurrence]:
        """Compute what would be generated for a pair without persisting it."""
        recurrence = await self._recurrences.get_recurrence(teacher_id, course_id)
        if recurrence is None:
            return []
        templates = await self._templates.list_active_templates(teacher_id, course_id)
        return self._plan(recurrence, templates)

    async def materialize_pair(self, teacher_id: str, course_id: str) -> int:
        """Persist upcoming occurrences for one pair. Returns how many were created.

        Any failure is logged and yields 0, so one bad pair never blocks the
        others.
        """
        try:
            recurrence = await self._recurrences.get_recurrence(teacher_id, course_id)
            if recurrence is None or recurrence.is_paused:
                return 0
            templates = await self._templates.list_active_templates(teacher_id, course_id)

            created = 0
            for planned in self._plan(recurrence, templates):
                if await self._occurrences.exists(planned.template_id, planned.publish_at):
                    continue
                if await self._occurrences.upsert(
                    planned.template_id, planned.publish_at, planned.status
                ):
                    created += 1
        except Exception:
            logger.exception(
                "Materialization failed for teacher=%s course=%s", teacher_id, course_id
            )
            return 0

        if created:
            logger.info(
                "Materialized %d occurrence(s) for teacher=%s course=%s",
                created,
                teacher_id,
                course_id,
            )
        return created

    async def materialize_all(self) -> int:
        """Materialize every non-paused pair. Returns the total created."""
        pairs = await self._recurrences.list_active_pairs()
        total = 0
        for teacher_id, course_id in pairs:
            total += await self.materialize_pair(teacher_id, course_id)
        logger.info(
            "Materialization pass done: %d new occurrence(s) across %d pair(s)",
            total,
            len(pairs),
        )
        return total

    # -- Students --------------------------------------------------------------

    async def list_student_visible_occurrences(self, course_id: str) -> list[StudentOccurrence]:
        return await self._occurrences.list_student_visible(course_id)

    # -- Internal --------------------------------------------------------------

    def _plan(
        self, recurrence: Recurrence, templates: list[Template]
    ) -> list[PlannedOccurrence]:
        return materialize_recurrence(
            recurrence,
            templates,
            now=self._clock(),
            zone=self._timezone,
            count=self._lookahead,
            max_scan_days=self._max_scan_days,
        )
