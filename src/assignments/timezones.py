"""Conversions between the institution's wall clock and absolute instants."""

from __future__ import annotations

import zoneinfo
from datetime import UTC, date, datetime, time, tzinfo
from functools import lru_cache


@lru_cache(maxsize=16)
def get_zone(zone_id: str) -> zoneinfo.ZoneInfo:
    """Return the ZoneInfo for an IANA name.  Raises ZoneInfoNotFoundError."""
    return zoneinfo.ZoneInfo(zone_id)


def _resolve(zone: tzinfo | str) -> tzinfo:
    return get_zone(zone) if isinstance(zone, str) else zone


def local_date(instant: datetime, zone: tzinfo | str) -> date:
    """Return the calendar date *instant* falls on in *zone*."""
    return instant.astimezone(_resolve(zone)).date()


def local_wall_clock_to_instant(day: date, wall_time: time, zone: tzinfo | str) -> datetime:
    """Return the UTC instant at which *zone*'s clock reads *day* *wall_time*.

    The wall clock is first read as if it were UTC, then shifted by the
    zone's offset measured at that candidate instant.  The offset is measured
    again at the shifted instant; near an offset transition the two can
    differ and the second one wins.  No offset is cached across dates.
    """
    tz = _resolve(zone)
    naive_utc = datetime.combine(day, wall_time, tzinfo=UTC)

    offset = naive_utc.astimezone(tz).utcoffset()
    instant = naive_utc - offset

    corrected = instant.astimezone(tz).utcoffset()
    if corrected != offset:
        instant = naive_utc - corrected
    return instant
