"""Recurring assignment data models.

Every record here is built at the store boundary from a SQLite row tuple
(``from_row``) and serialized back with ``to_row`` in the column order of the
matching table in :mod:`src.assignments.schema`.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import Any

# -- Weekdays ------------------------------------------------------------------

WEEKDAY_NAMES: tuple[str, ...] = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

# Python's date.weekday(): Monday is 0, Sunday is 6.
WEEKDAY_INDEX: dict[str, int] = {
    "mon": 0,
    "tue": 1,
    "wed": 2,
    "thu": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}

# -- Occurrence statuses -------------------------------------------------------

STATUS_SCHEDULED = "scheduled"
STATUS_SKIPPED_HOLIDAY = "skipped-holiday"
STATUS_POSTED = "posted"

OCCURRENCE_STATUSES = (STATUS_SCHEDULED, STATUS_SKIPPED_HOLIDAY, STATUS_POSTED)
STUDENT_VISIBLE_STATUSES = (STATUS_SCHEDULED, STATUS_POSTED)


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_utc_iso(instant: datetime) -> str:
    """Serialize an aware datetime as a second-precision UTC ISO string.

    Stored instants share one fixed-width format so SQLite can compare them
    as text.
    """
    if instant.tzinfo is None:
        msg = f"Naive datetime cannot be stored as an instant: {instant!r}"
        raise ValueError(msg)
    return instant.astimezone(UTC).replace(microsecond=0).isoformat()


def from_utc_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def normalize_weekdays(days: Any) -> tuple[str, ...]:
    """Return the weekday names in *days* in canonical Sunday-first order.

    Accepts a comma-separated string (``"mon, Wed"``) or any iterable of
    names.  Raises ValueError on an unknown name.
    """
    if isinstance(days, str):
        days = days.split(",")
    names = {str(d).strip().lower() for d in days}
    names.discard("")
    unknown = names - set(WEEKDAY_NAMES)
    if unknown:
        msg = f"Unknown weekday(s): {', '.join(sorted(unknown))}"
        raise ValueError(msg)
    return tuple(d for d in WEEKDAY_NAMES if d in names)


def format_publish_time(value: time) -> str:
    return value.strftime("%H:%M")


def parse_publish_time(value: str) -> time:
    hours, minutes = value.strip().split(":")[:2]
    return time(int(hours), int(minutes))


# -- Holiday ranges ------------------------------------------------------------


def _holiday_date(value: Any) -> date:
    """Coerce a holiday endpoint to a calendar date.  Raises ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        value = value.strip()
        if "T" in value:
            return datetime.fromisoformat(value).date()
        return date.fromisoformat(value)
    msg = f"Holiday endpoint must be a date, got {value!r}"
    raise ValueError(msg)


@dataclass(frozen=True)
class HolidayRange:
    """An inclusive range of local calendar dates with no publishing."""

    start: date
    end: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "start", _holiday_date(self.start))
        object.__setattr__(self, "end", _holiday_date(self.end))
        if self.end < self.start:
            msg = f"Holiday range ends before it starts: {self.start} > {self.end}"
            raise ValueError(msg)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_value(cls, value: Any) -> HolidayRange:
        """Build from a ``{"start", "end"}`` mapping or a two-item sequence."""
        if isinstance(value, HolidayRange):
            return value
        if isinstance(value, dict):
            start, end = value["start"], value["end"]
        else:
            start, end = value
        return cls(start=start, end=end)


def dump_holidays(ranges: list[HolidayRange]) -> str:
    return json.dumps([r.to_dict() for r in ranges])


def load_holidays(raw: str | None) -> list[HolidayRange]:
    """Parse the stored JSON holiday list.  Raises ValueError if malformed."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Holiday ranges are not valid JSON: {raw!r}"
        raise ValueError(msg) from exc
    if not isinstance(items, list):
        msg = f"Holiday ranges must be a list, got {type(items).__name__}"
        raise ValueError(msg)
    try:
        ranges = [HolidayRange.from_value(item) for item in items]
    except (KeyError, TypeError) as exc:
        msg = f"Malformed holiday range in {raw!r}"
        raise ValueError(msg) from exc
    return sorted(ranges, key=lambda r: (r.start, r.end))


# -- Records -------------------------------------------------------------------


@dataclass
class Recurrence:
    """A teacher's weekly publishing rule for one course.

    Attributes:
        teacher_id: Owning teacher.
        course_id: Course the assignments are posted to.
        weekdays: Weekday names (``"sun"`` .. ``"sat"``), canonical order.
        publish_time: Local wall-clock time of day in the institution zone.
        is_paused: When set, nothing is materialized for this pair.
        holiday_ranges: Inclusive date ranges whose occurrences are skipped.
        updated_at: ISO 8601 timestamp of the last save.
    """

    teacher_id: str
    course_id: str
    weekdays: tuple[str, ...]
    publish_time: time
    is_paused: bool = False
    holiday_ranges: list[HolidayRange] = field(default_factory=list)
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.updated_at:
            self.updated_at = utc_now().isoformat()

    @property
    def weekday_indexes(self) -> frozenset[int]:
        return frozenset(WEEKDAY_INDEX[d] for d in self.weekdays)

    def is_holiday(self, day: date) -> bool:
        return any(r.contains(day) for r in self.holiday_ranges)

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``recurrences`` column order."""
        return (
            self.teacher_id,
            self.course_id,
            ",".join(self.weekdays),
            format_publish_time(self.publish_time),
            int(self.is_paused),
            dump_holidays(self.holiday_ranges),
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Recurrence:
        return cls(
            teacher_id=row[0],
            course_id=row[1],
            weekdays=normalize_weekdays(row[2] or ""),
            publish_time=parse_publish_time(row[3]),
            is_paused=bool(row[4]),
            holiday_ranges=load_holidays(row[5]),
            updated_at=row[6],
        )


@dataclass
class Template:
    """A recurring assignment definition.

    ``start_date`` and ``end_date`` bound the local calendar days the template
    may publish on; either side may be open.
    """

    id: str
    teacher_id: str
    course_id: str
    title: str
    description: str = ""
    attachments: list[Any] = field(default_factory=list)
    active: bool = True
    start_date: date | None = None
    end_date: date | None = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.created_at:
            self.created_at = utc_now().isoformat()
        if not self.updated_at:
            self.updated_at = self.created_at

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``templates`` column order."""
        return (
            self.id,
            self.teacher_id,
            self.course_id,
            self.title,
            self.description,
            json.dumps(self.attachments),
            int(self.active),
            self.start_date.isoformat() if self.start_date else None,
            self.end_date.isoformat() if self.end_date else None,
            self.created_at,
            self.updated_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Template:
        return cls(
            id=row[0],
            teacher_id=row[1],
            course_id=row[2],
            title=row[3],
            description=row[4] or "",
            attachments=json.loads(row[5]) if row[5] else [],
            active=bool(row[6]),
            start_date=_parse_date(row[7]),
            end_date=_parse_date(row[8]),
            created_at=row[9],
            updated_at=row[10],
        )


@dataclass
class Occurrence:
    """One persisted publish instant of a template."""

    id: int
    template_id: str
    publish_at: datetime
    status: str
    created_at: str
    posted_at: str | None = None

    @property
    def is_posted(self) -> bool:
        return self.status == STATUS_POSTED

    @classmethod
    def from_row(cls, row: tuple) -> Occurrence:
        return cls(
            id=row[0],
            template_id=row[1],
            publish_at=from_utc_iso(row[2]),
            status=row[3],
            created_at=row[4],
            posted_at=row[5],
        )


@dataclass(frozen=True)
class PlannedOccurrence:
    """A computed, not yet persisted, occurrence (also the preview shape)."""

    template_id: str
    title: str
    publish_at: datetime
    status: str


@dataclass(frozen=True)
class DueOccurrence:
    """A scheduled occurrence whose instant has passed, with posting context."""

    occurrence_id: int
    template_id: str
    publish_at: datetime
    teacher_id: str
    course_id: str
    title: str
    description: str

    @classmethod
    def from_row(cls, row: tuple) -> DueOccurrence:
        return cls(
            occurrence_id=row[0],
            template_id=row[1],
            publish_at=from_utc_iso(row[2]),
            teacher_id=row[3],
            course_id=row[4],
            title=row[5],
            description=row[6] or "",
        )


@dataclass(frozen=True)
class StudentOccurrence:
    """What a student may see of an occurrence."""

    id: int
    title: str
    description: str
    publish_at: datetime
    status: str

    @classmethod
    def from_row(cls, row: tuple) -> StudentOccurrence:
        return cls(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            publish_at=from_utc_iso(row[3]),
            status=row[4],
        )


@dataclass
class PostedTask:
    """A live homework task created from a posted occurrence."""

    id: int
    occurrence_id: int
    course_id: str
    title: str
    description: str
    task_type: str
    due_date: datetime
    created_at: str

    @classmethod
    def from_row(cls, row: tuple) -> PostedTask:
        return cls(
            id=row[0],
            occurrence_id=row[1],
            course_id=row[2],
            title=row[3],
            description=row[4] or "",
            task_type=row[5],
            due_date=from_utc_iso(row[6]),
            created_at=row[7],
        )


def make_template_id() -> str:
    """Generate a new template ID."""
    return uuid.uuid4().hex
