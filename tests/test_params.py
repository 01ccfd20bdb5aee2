"""Tests for save-boundary validation."""

from datetime import date, datetime, time

import pytest
from pydantic import ValidationError

from src.assignments.models import HolidayRange
from src.assignments.params import RecurrenceParams, TemplateParams

# -- RecurrenceParams ----------------------------------------------------------


def test_recurrence_params_normalizes_input() -> None:
    p = RecurrenceParams(
        weekdays="Wed,mon",
        publish_time="9:05",
        holiday_ranges=[("2024-07-01", "2024-07-03"), {"start": "2024-06-20", "end": "2024-06-20"}],
    )
    assert p.weekdays == ("mon", "wed")
    assert p.publish_time == time(9, 5)
    assert p.is_paused is False
    assert p.holiday_ranges == [
        HolidayRange(date(2024, 6, 20), date(2024, 6, 20)),
        HolidayRange(date(2024, 7, 1), date(2024, 7, 3)),
    ]


def test_recurrence_params_accepts_time_object() -> None:
    p = RecurrenceParams(weekdays=["fri"], publish_time=time(18, 0, 30))
    assert p.publish_time == time(18, 0)


@pytest.mark.parametrize("weekdays", [[], "", None, ["noday"]])
def test_recurrence_params_rejects_bad_weekdays(weekdays) -> None:
    with pytest.raises(ValidationError):
        RecurrenceParams(weekdays=weekdays, publish_time="10:00")


@pytest.mark.parametrize("publish_time", ["", None, "24:00", "10:60", "10", "ten"])
def test_recurrence_params_rejects_bad_publish_time(publish_time) -> None:
    with pytest.raises(ValidationError):
        RecurrenceParams(weekdays=["mon"], publish_time=publish_time)


@pytest.mark.parametrize(
    "holidays",
    [
        [("2024-07-03", "2024-07-01")],
        [{"start": "2024-07-01"}],
        [("not-a-date", "2024-07-01")],
        [{"start": 1, "end": 2}],
        [(None, "2024-07-01")],
        [7],
    ],
)
def test_recurrence_params_rejects_bad_holidays(holidays) -> None:
    with pytest.raises(ValidationError):
        RecurrenceParams(weekdays=["mon"], publish_time="10:00", holiday_ranges=holidays)


def test_recurrence_params_holiday_datetimes_become_dates() -> None:
    p = RecurrenceParams(
        weekdays=["mon"],
        publish_time="10:00",
        holiday_ranges=[{"start": datetime(2024, 6, 10), "end": datetime(2024, 6, 11, 23, 0)}],
    )
    assert p.holiday_ranges == [HolidayRange(date(2024, 6, 10), date(2024, 6, 11))]
    assert type(p.holiday_ranges[0].end) is date


# -- TemplateParams ------------------------------------------------------------


def test_template_params_defaults() -> None:
    p = TemplateParams(title="  Essay  ")
    assert p.title == "Essay"
    assert p.description == ""
    assert p.attachments == []
    assert p.active is True
    assert p.start_date is None
    assert p.end_date is None


def test_template_params_none_description_and_attachments() -> None:
    p = TemplateParams(title="Essay", description=None, attachments=None)
    assert p.description == ""
    assert p.attachments == []


def test_template_params_parses_dates() -> None:
    p = TemplateParams(title="Essay", start_date="2024-06-01", end_date="2024-06-30")
    assert p.start_date == date(2024, 6, 1)
    assert p.end_date == date(2024, 6, 30)


def test_template_params_rejects_blank_title() -> None:
    with pytest.raises(ValidationError):
        TemplateParams(title="   ")


def test_template_params_rejects_inverted_window() -> None:
    with pytest.raises(ValidationError, match="before start_date"):
        TemplateParams(title="Essay", start_date="2024-06-30", end_date="2024-06-01")
