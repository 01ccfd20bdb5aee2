"""Input models validated at the save boundary.

Bad settings are rejected here with a ``pydantic.ValidationError`` and never
reach the stores or the materializer.
"""

from __future__ import annotations

import re
from datetime import date, time
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from src.assignments.models import HolidayRange, normalize_weekdays

_PUBLISH_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class RecurrenceParams(BaseModel):
    """A teacher's requested weekly publishing rule."""

    weekdays: tuple[str, ...] = Field(description="Weekday names, e.g. ['mon', 'wed'] or 'mon,wed'")
    publish_time: time = Field(description="Local publish time as HH:MM")
    is_paused: bool = Field(default=False)
    holiday_ranges: list[HolidayRange] = Field(default_factory=list)

    @field_validator("weekdays", mode="before")
    @classmethod
    def _check_weekdays(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            msg = "weekdays is required"
            raise ValueError(msg)
        days = normalize_weekdays(value)
        if not days:
            msg = "At least one weekday is required"
            raise ValueError(msg)
        return days

    @field_validator("publish_time", mode="before")
    @classmethod
    def _check_publish_time(cls, value: Any) -> time:
        if isinstance(value, time):
            return value.replace(second=0, microsecond=0)
        match = _PUBLISH_TIME_RE.match(str(value or "").strip())
        if match is None:
            msg = f"publish_time must be HH:MM, got {value!r}"
            raise ValueError(msg)
        return time(int(match.group(1)), int(match.group(2)))

    @field_validator("holiday_ranges", mode="before")
    @classmethod
    def _check_holidays(cls, value: Any) -> list[HolidayRange]:
        if not value:
            return []
        try:
            ranges = [HolidayRange.from_value(item) for item in value]
        except (KeyError, TypeError) as exc:
            msg = f"Malformed holiday range: {exc}"
            raise ValueError(msg) from exc
        return sorted(ranges, key=lambda r: (r.start, r.end))


class TemplateParams(BaseModel):
    """Fields of a new recurring assignment template."""

    title: str = Field(min_length=1)
    description: str = Field(default="")
    attachments: list[Any] = Field(default_factory=list)
    active: bool = Field(default=True)
    start_date: date | None = Field(default=None)
    end_date: date | None = Field(default=None)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "title must not be blank"
            raise ValueError(msg)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _default_description(cls, value: Any) -> str:
        return value or ""

    @field_validator("attachments", mode="before")
    @classmethod
    def _default_attachments(cls, value: Any) -> list[Any]:
        return value or []

    @model_validator(mode="after")
    def _check_window(self) -> TemplateParams:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            msg = f"end_date {self.end_date} is before start_date {self.start_date}"
            raise ValueError(msg)
        return self


# Fields a teacher may change on an existing template.
TEMPLATE_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "attachments", "active", "start_date", "end_date"}
)
