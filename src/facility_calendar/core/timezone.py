"""Zone-local date arithmetic for the calendar grid.

Every grid computation (which day column, which time row) is expressed in the
facility's wall-clock minutes, never in the viewer's own zone. Instants are
always aware ``datetime`` values in UTC.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIME_ZONE = "America/New_York"
MINUTES_PER_DAY = 24 * 60
WEEKDAY_TOKENS = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

_DATE_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@lru_cache(maxsize=64)
def resolve_zone(name: Optional[str]) -> ZoneInfo:
    if not name:
        return ZoneInfo(DEFAULT_TIME_ZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; falling back to %s", name, DEFAULT_TIME_ZONE)
        return ZoneInfo(DEFAULT_TIME_ZONE)


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _local(instant: datetime, zone: Optional[str]) -> datetime:
    return _as_utc(instant).astimezone(resolve_zone(zone))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date_key(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    match = _DATE_KEY_RE.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def parse_clock(value: Optional[str]) -> Optional[int]:
    match = _HHMM_RE.match((value or "").strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour * 60 + minute


def parse_time_to_minutes(value: Optional[str]) -> int:
    """``"HH:MM"`` to minutes after midnight; malformed input yields 0."""

    return parse_clock(value) or 0


def minutes_to_time(value: float) -> str:
    clamped = max(0, min(MINUTES_PER_DAY - 1, round(value)))
    return f"{clamped // 60:02d}:{clamped % 60:02d}"


def minutes_to_label(value: float) -> str:
    clamped = max(0, min(MINUTES_PER_DAY - 1, round(value)))
    hour24, minute = divmod(clamped, 60)
    period = "PM" if hour24 >= 12 else "AM"
    hour12 = hour24 % 12 or 12
    if minute == 0:
        return f"{hour12} {period}"
    return f"{hour12}:{minute:02d} {period}"


def date_key(instant: datetime, zone: Optional[str]) -> str:
    return _local(instant, zone).strftime("%Y-%m-%d")


def today_key(zone: Optional[str]) -> str:
    return date_key(utc_now(), zone)


def minutes_of_day(instant: datetime, zone: Optional[str]) -> int:
    local = _local(instant, zone)
    return local.hour * 60 + local.minute


def zoned_start_of_day(key: str, zone: Optional[str]) -> datetime:
    """UTC instant of local midnight for ``key``; an unparseable key means today."""

    day = parse_date_key(key)
    if day is None:
        logger.debug("Unparseable date key %r; using today", key)
        day = parse_date_key(today_key(zone))
        assert day is not None
    local_midnight = datetime.combine(day, time(0, 0), tzinfo=resolve_zone(zone))
    return local_midnight.astimezone(timezone.utc)


def to_instant(key: str, hhmm: str, zone: Optional[str], *, fold: int = 0) -> datetime:
    """Resolve a zone-local wall-clock time to a UTC instant.

    Times inside a spring-forward gap land after the gap. During the repeated
    fall-back hour ``fold=0`` picks the first occurrence, ``fold=1`` the second.
    """

    day = parse_date_key(key) or parse_date_key(today_key(zone))
    assert day is not None
    minutes = parse_time_to_minutes(hhmm)
    local = datetime.combine(
        day,
        time(minutes // 60, minutes % 60, fold=fold),
        tzinfo=resolve_zone(zone),
    )
    return local.astimezone(timezone.utc)


def instant_at_minutes(key: str, minutes: int, zone: Optional[str], *, fold: int = 0) -> datetime:
    """Like ``to_instant`` but for a minute offset from the start of ``key``.

    Offsets of a full day or more roll into the following days, so 1440 is the
    next local midnight rather than 23:59.
    """

    days, remainder = divmod(int(minutes), MINUTES_PER_DAY)
    if days:
        key = add_days(key, days)
    return to_instant(key, minutes_to_time(remainder), zone, fold=fold)


def local_fold(instant: datetime, zone: Optional[str]) -> int:
    """1 when ``instant`` is the second pass through a repeated wall-clock hour."""

    return _local(instant, zone).fold


def zoned_end_of_day(key: str, zone: Optional[str]) -> datetime:
    """Last millisecond of the local day (23:59:59.999 wall clock) as UTC."""

    start = zoned_start_of_day(key, zone)
    day = parse_date_key(date_key(start, zone))
    assert day is not None
    local = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=resolve_zone(zone))
    return local.astimezone(timezone.utc)


def add_days(key: str, days: int) -> str:
    day = parse_date_key(key)
    if day is None:
        raise ValueError(f"Invalid date key: {key!r}")
    return (day + timedelta(days=days)).isoformat()


def weekday_token(key: str, zone: Optional[str]) -> str:
    day = parse_date_key(key) or parse_date_key(today_key(zone))
    assert day is not None
    # date.weekday() is Monday=0; tokens are Sunday-first.
    return WEEKDAY_TOKENS[(day.weekday() + 1) % 7]


def local_weekday_index(instant: datetime, zone: Optional[str]) -> int:
    """Sunday=0 … Saturday=6 in the zone."""

    return (_local(instant, zone).weekday() + 1) % 7


def format_time_range(start: datetime, end: datetime, zone: Optional[str]) -> str:
    return f"{minutes_to_label(minutes_of_day(start, zone))} - {minutes_to_label(minutes_of_day(end, zone))}"


__all__ = [
    "DEFAULT_TIME_ZONE",
    "MINUTES_PER_DAY",
    "WEEKDAY_TOKENS",
    "add_days",
    "date_key",
    "format_time_range",
    "instant_at_minutes",
    "local_fold",
    "local_weekday_index",
    "minutes_of_day",
    "minutes_to_label",
    "minutes_to_time",
    "parse_clock",
    "parse_date_key",
    "parse_time_to_minutes",
    "resolve_zone",
    "to_instant",
    "today_key",
    "utc_now",
    "weekday_token",
    "zoned_end_of_day",
    "zoned_start_of_day",
]
