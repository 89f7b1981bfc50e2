"""Visible windows for each calendar view."""

from __future__ import annotations

import calendar as _calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from ..config import DEFAULT_CACHE_PREFIX
from ..domain import ViewMode, iso_instant
from .timezone import (
    date_key,
    parse_date_key,
    today_key,
    zoned_end_of_day,
    zoned_start_of_day,
)

RANGE_CACHE_PREFIX = DEFAULT_CACHE_PREFIX
AGENDA_SPAN_DAYS = 35


@dataclass(frozen=True)
class CalendarWindow:
    start: datetime
    end: datetime
    view: ViewMode
    anchor: str

    @property
    def range_token(self) -> str:
        return f"{iso_instant(self.start)}:{iso_instant(self.end)}"

    def cache_key(self, prefix: str = RANGE_CACHE_PREFIX) -> str:
        return prefix + self.range_token

    def day_keys(self, zone: Optional[str]) -> List[str]:
        first = parse_date_key(date_key(self.start, zone))
        last = parse_date_key(date_key(self.end - timedelta(microseconds=1), zone))
        assert first is not None and last is not None
        return [(first + timedelta(days=offset)).isoformat() for offset in range((last - first).days + 1)]


def _anchor_day(anchor_date_key: str, zone: Optional[str]) -> date:
    day = parse_date_key(anchor_date_key) or parse_date_key(today_key(zone))
    assert day is not None
    return day


def _monday(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _span(view: ViewMode, day: date) -> Tuple[date, date]:
    if view is ViewMode.DAY:
        return day, day
    if view is ViewMode.WEEK:
        first = _monday(day)
        return first, first + timedelta(days=6)
    if view is ViewMode.MONTH:
        month_start = day.replace(day=1)
        month_end = day.replace(day=_calendar.monthrange(day.year, day.month)[1])
        first = _monday(month_start)
        return first, _monday(month_end) + timedelta(days=6)
    first = _monday(day)
    return first, first + timedelta(days=AGENDA_SPAN_DAYS - 1)


def range_for_view(view: ViewMode, anchor_date_key: str, zone: Optional[str]) -> CalendarWindow:
    """Zone-local day bounds of the window shown for ``view`` around the anchor."""

    view = ViewMode(view)
    day = _anchor_day(anchor_date_key, zone)
    first, last = _span(view, day)
    if view is ViewMode.DAY:
        end = zoned_start_of_day((last + timedelta(days=1)).isoformat(), zone)
    else:
        end = zoned_end_of_day(last.isoformat(), zone)
    return CalendarWindow(
        start=zoned_start_of_day(first.isoformat(), zone),
        end=end,
        view=view,
        anchor=day.isoformat(),
    )


def _add_months(day: date, months: int) -> date:
    index = day.month - 1 + months
    year, month = day.year + index // 12, index % 12 + 1
    return date(year, month, min(day.day, _calendar.monthrange(year, month)[1]))


def shift_anchor(anchor_date_key: str, view: ViewMode, direction: int, zone: Optional[str] = None) -> str:
    day = _anchor_day(anchor_date_key, zone)
    view = ViewMode(view)
    if view is ViewMode.MONTH:
        return _add_months(day, direction).isoformat()
    if view is ViewMode.DAY:
        return (day + timedelta(days=direction)).isoformat()
    return (day + timedelta(days=7 * direction)).isoformat()


def adjacent_windows(window: CalendarWindow, zone: Optional[str]) -> Tuple[CalendarWindow, CalendarWindow]:
    previous = range_for_view(window.view, shift_anchor(window.anchor, window.view, -1, zone), zone)
    following = range_for_view(window.view, shift_anchor(window.anchor, window.view, 1, zone), zone)
    return previous, following


def api_view(view: ViewMode) -> str:
    """The server only knows day, week and month ranges."""

    view = ViewMode(view)
    return ViewMode.DAY.value if view is ViewMode.AGENDA else view.value


__all__ = [
    "AGENDA_SPAN_DAYS",
    "RANGE_CACHE_PREFIX",
    "CalendarWindow",
    "adjacent_windows",
    "api_view",
    "range_for_view",
    "shift_anchor",
]
