from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..domain import CalendarEvent
from .timezone import (
    add_days,
    date_key,
    local_weekday_index,
    minutes_of_day,
    parse_clock,
    parse_date_key,
    zoned_start_of_day,
)


def has_time_overlap(
    candidate_start: datetime,
    candidate_end: datetime,
    existing_start: datetime,
    existing_end: datetime,
) -> bool:
    """Half-open interval overlap; touching boundaries do not overlap."""

    return candidate_start < existing_end and candidate_end > existing_start


def detect_conflicts(events: Iterable[CalendarEvent]) -> Set[str]:
    """Ids of events that overlap another event at the same location."""

    by_location: Dict[str, List[CalendarEvent]] = {}
    for event in events:
        by_location.setdefault(event.location, []).append(event)

    conflicting: set[str] = set()
    for rows in by_location.values():
        rows.sort(key=lambda item: (item.start_at, item.end_at))
        active: list[Tuple[datetime, int, str]] = []
        for order, row in enumerate(rows):
            while active and active[0][0] <= row.start_at:
                heapq.heappop(active)
            if active:
                conflicting.add(row.id)
                conflicting.update(entry[2] for entry in active)
            heapq.heappush(active, (row.end_at, order, row.id))
    return conflicting


def events_touching_day(events: Iterable[CalendarEvent], key: str, zone: Optional[str]) -> List[CalendarEvent]:
    if parse_date_key(key) is None:
        return []
    day_start = zoned_start_of_day(key, zone)
    day_end = zoned_start_of_day(add_days(key, 1), zone)
    return [event for event in events if has_time_overlap(event.start_at, event.end_at, day_start, day_end)]


def conflicting_event_ids(events: Sequence[CalendarEvent], zone: Optional[str]) -> Set[str]:
    """Run the sweep once per zone-local day each event touches."""

    days: set[str] = set()
    for event in events:
        cursor = date_key(event.start_at, zone)
        last = date_key(event.end_at, zone)
        while cursor <= last:
            days.add(cursor)
            cursor = add_days(cursor, 1)

    conflicting: set[str] = set()
    for key in sorted(days):
        conflicting |= detect_conflicts(events_touching_day(events, key, zone))
    return conflicting


@dataclass(frozen=True)
class BusinessHours:
    start: str = "08:00"
    end: str = "17:00"
    days: Tuple[int, ...] = field(default=(1, 2, 3, 4, 5))

    @classmethod
    def parse(cls, value: Any) -> "BusinessHours":
        fallback = cls()
        if not isinstance(value, Mapping):
            return fallback
        start = value.get("start")
        end = value.get("end")
        raw_days = value.get("days")
        days = fallback.days
        if isinstance(raw_days, list):
            days = tuple(
                sorted({int(day) for day in raw_days if isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6})
            )
        return cls(
            start=start if isinstance(start, str) else fallback.start,
            end=end if isinstance(end, str) else fallback.end,
            days=days,
        )


def is_outside_business_hours(
    start_at: datetime,
    end_at: datetime,
    zone: Optional[str],
    business_hours: BusinessHours,
) -> bool:
    allowed_start = parse_clock(business_hours.start)
    allowed_end = parse_clock(business_hours.end)
    if allowed_start is None or allowed_end is None:
        return False

    start_day = local_weekday_index(start_at, zone)
    end_day = local_weekday_index(end_at, zone)
    if start_day not in business_hours.days or end_day not in business_hours.days:
        return True
    if date_key(start_at, zone) != date_key(end_at, zone):
        return True
    return minutes_of_day(start_at, zone) < allowed_start or minutes_of_day(end_at, zone) > allowed_end


__all__ = [
    "BusinessHours",
    "conflicting_event_ids",
    "detect_conflicts",
    "events_touching_day",
    "has_time_overlap",
    "is_outside_business_hours",
]
