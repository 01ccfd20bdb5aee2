"""Tests for wall-clock to instant conversion."""

import zoneinfo
from datetime import UTC, date, datetime, time, timedelta

from src.assignments.timezones import get_zone, local_date, local_wall_clock_to_instant


def test_fixed_offset_zone() -> None:
    # Etc/GMT-2 is UTC+2 (POSIX sign convention)
    instant = local_wall_clock_to_instant(date(2024, 6, 10), time(10, 0), "Etc/GMT-2")
    assert instant == datetime(2024, 6, 10, 8, 0, tzinfo=UTC)


def test_utc_zone_is_identity() -> None:
    instant = local_wall_clock_to_instant(date(2024, 1, 1), time(23, 30), "UTC")
    assert instant == datetime(2024, 1, 1, 23, 30, tzinfo=UTC)


def test_offset_east_of_utc_crosses_midnight() -> None:
    # 01:00 in Tokyo (UTC+9) is the previous day in UTC
    instant = local_wall_clock_to_instant(date(2024, 6, 10), time(1, 0), "Asia/Tokyo")
    assert instant == datetime(2024, 6, 9, 16, 0, tzinfo=UTC)


def test_offset_recomputed_per_date_across_dst() -> None:
    zone = zoneinfo.ZoneInfo("America/Chicago")
    start = date(2024, 3, 1)
    for i in range(20):
        day = start + timedelta(days=i)
        expected = datetime.combine(day, time(9, 0), tzinfo=zone).astimezone(UTC)
        assert local_wall_clock_to_instant(day, time(9, 0), "America/Chicago") == expected


def test_early_morning_on_transition_day() -> None:
    # Chicago springs forward at 02:00 local on 2024-03-10; 01:00 is still CST
    instant = local_wall_clock_to_instant(date(2024, 3, 10), time(1, 0), "America/Chicago")
    assert instant == datetime(2024, 3, 10, 7, 0, tzinfo=UTC)


def test_just_after_transition_uses_new_offset() -> None:
    # 03:30 on the same day is CDT (UTC-5)
    instant = local_wall_clock_to_instant(date(2024, 3, 10), time(3, 30), "America/Chicago")
    assert instant == datetime(2024, 3, 10, 8, 30, tzinfo=UTC)


def test_accepts_tzinfo_object() -> None:
    zone = zoneinfo.ZoneInfo("Africa/Cairo")
    by_name = local_wall_clock_to_instant(date(2024, 1, 15), time(10, 0), "Africa/Cairo")
    by_object = local_wall_clock_to_instant(date(2024, 1, 15), time(10, 0), zone)
    assert by_name == by_object
    assert by_name.astimezone(zone).time() == time(10, 0)


def test_local_date() -> None:
    instant = datetime(2024, 6, 9, 23, 30, tzinfo=UTC)
    assert local_date(instant, "Etc/GMT-2") == date(2024, 6, 10)
    assert local_date(instant, "UTC") == date(2024, 6, 9)


def test_get_zone_is_cached() -> None:
    assert get_zone("Africa/Cairo") is get_zone("Africa/Cairo")
