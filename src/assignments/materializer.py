"""Occurrence materializer — pure date math, no I/O.

Turns a recurrence and a template into the concrete publish instants the
template should be posted at.  The result depends only on the arguments, so
the same function backs both persisted materialization and the read-only
preview.
"""

from __future__ import annotations

import logging
from datetime import time, timedelta
from typing import TYPE_CHECKING

from src.assignments.models import (
    STATUS_SCHEDULED,
    STATUS_SKIPPED_HOLIDAY,
    PlannedOccurrence,
)
from src.assignments.timezones import get_zone, local_date, local_wall_clock_to_instant

if TYPE_CHECKING:
    from datetime import datetime, tzinfo

    from src.assignments.models import Recurrence, Template

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = 28
DEFAULT_MAX_SCAN_DAYS = 120

_END_OF_DAY = time(23, 59, 59)


def materialize_template(
    recurrence: Recurrence,
    template: Template,
    *,
    now: datetime,
    zone: tzinfo | str,
    count: int = DEFAULT_LOOKAHEAD,
    max_scan_days: int = DEFAULT_MAX_SCAN_DAYS,
) -> list[PlannedOccurrence]:
    """Compute up to *count* upcoming occurrences of *template*.

    Days are scanned one at a time from the template's ``start_date`` (or
    today's local date) for at most *max_scan_days* days.  A day qualifies
    when its weekday is in the recurrence and it lies inside the template's
    window.  Instants before *now* are not returned.  Days inside a holiday
    range are returned with status ``skipped-holiday``.

    A paused recurrence, an inactive template, or an empty weekday set yields
    an empty list.  A sparse pattern may yield fewer than *count* results.
    """
    if recurrence.is_paused or not template.active or not recurrence.weekdays:
        return []

    tz = get_zone(zone) if isinstance(zone, str) else zone
    weekdays = recurrence.weekday_indexes
    anchor = template.start_date or local_date(now, tz)
    window_end = (
        local_wall_clock_to_instant(template.end_date, _END_OF_DAY, tz)
        if template.end_date
        else None
    )

    results: list[PlannedOccurrence] = []
    for offset in range(max_scan_days):
        if len(results) >= count:
            break
        day = anchor + timedelta(days=offset)
        if day.weekday() not in weekdays:
            continue

        publish_at = local_wall_clock_to_instant(day, recurrence.publish_time, tz)
        if window_end is not None and publish_at > window_end:
            break
        if publish_at < now:
            continue

        status = STATUS_SKIPPED_HOLIDAY if recurrence.is_holiday(day) else STATUS_SCHEDULED
        results.append(
            PlannedOccurrence(
                template_id=template.id,
                title=template.title,
                publish_at=publish_at,
                status=status,
            )
        )

    if len(results) < count:
        logger.debug(
            "Template %s produced %d of %d occurrence(s) within %d day(s)",
            template.id,
            len(results),
            count,
            max_scan_days,
        )
    return results


def materialize_recurrence(
    recurrence: Recurrence,
    templates: list[Template],
    *,
    now: datetime,
    zone: tzinfo | str,
    count: int = DEFAULT_LOOKAHEAD,
    max_scan_days: int = DEFAULT_MAX_SCAN_DAYS,
) -> list[PlannedOccurrence]:
    """Materialize every template of a pair, sorted by publish instant."""
    planned: list[PlannedOccurrence] = []
    for template in templates:
        planned.extend(
            materialize_template(
                recurrence,
                template,
                now=now,
                zone=zone,
                count=count,
                max_scan_days=max_scan_days,
            )
        )
    planned.sort(key=lambda p: (p.publish_at, p.template_id))
    return planned
