from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..core.conflicts import BusinessHours, conflicting_event_ids, is_outside_business_hours
from ..core.filters import ALL_LOCATIONS, event_locations, filter_events
from ..core.layout import group_by_day, layout_day
from ..core.ranges import range_for_view
from ..core.recurrence import RepeatSettings, build_recurrence
from ..core.timezone import parse_date_key
from ..domain import CalendarEvent, CalendarTemplate, RecurrenceFrequency, RepeatEndMode, ViewMode, parse_instant

from .registry import register_api
from .serializers import serialize_event, serialize_layout, serialize_window


def _zone(time_zone: Optional[str]) -> str:
    return time_zone or get_settings().facility.timezone


def _parse_events(records: List[Dict[str, Any]]) -> List[CalendarEvent]:
    events: list[CalendarEvent] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(f"Event #{index} must be an object.")
        try:
            events.append(CalendarEvent.from_record(record))
        except KeyError as exc:
            raise ValueError(f"Event #{index} is missing {exc.args[0]!r}.") from exc
    return events


def _require_date(value: str, label: str) -> str:
    if parse_date_key(value) is None:
        raise ValueError(f"Invalid {label}: {value!r} (expected YYYY-MM-DD)")
    return value


@register_api(
    "calendar_layout_day",
    description="Lay out one day's activities into lanes and pixel geometry for the time grid.",
    category="calendar",
    tags=("layout", "read"),
)
def calendar_layout_day(events: List[Dict[str, Any]], date: str, time_zone: Optional[str] = None) -> Dict[str, Any]:
    zone = _zone(time_zone)
    _require_date(date, "date")
    parsed = _parse_events(events)
    conflicts = conflicting_event_ids(parsed, zone)
    layouts = layout_day(group_by_day(parsed, zone).get(date, []), zone, get_settings().grid, conflicts=conflicts)
    return {"date": date, "timeZone": zone, "layouts": [serialize_layout(layout) for layout in layouts]}


@register_api(
    "calendar_detect_conflicts",
    description="Return ids of activities that overlap another activity in the same location on the same day.",
    category="calendar",
    tags=("conflicts", "read"),
)
def calendar_detect_conflicts(events: List[Dict[str, Any]], time_zone: Optional[str] = None) -> Dict[str, Any]:
    zone = _zone(time_zone)
    return {"conflicts": sorted(conflicting_event_ids(_parse_events(events), zone))}


@register_api(
    "calendar_build_recurrence",
    description="Build the recurrence descriptor sent with a repeating activity.",
    category="calendar",
    tags=("recurrence",),
)
def calendar_build_recurrence(
    frequency: str,
    anchor_date: str,
    interval: int = 1,
    by_day: Optional[List[str]] = None,
    end_mode: str = "NEVER",
    until_date: str = "",
    count: int = 0,
    time_zone: Optional[str] = None,
) -> Dict[str, Any]:
    settings = RepeatSettings(
        frequency=RecurrenceFrequency(frequency.upper()),
        interval=interval,
        by_day=list(by_day or []),
        end_mode=RepeatEndMode(end_mode.upper()),
        until_date=until_date,
        count=count,
    )
    descriptor = build_recurrence(settings, _require_date(anchor_date, "anchor_date"), _zone(time_zone))
    return {"recurrence": descriptor.to_payload() if descriptor else None}


@register_api(
    "calendar_range_for_view",
    description="Compute the UTC window and cache key fetched for a calendar view.",
    category="calendar",
    tags=("range", "read"),
)
def calendar_range_for_view(view: str, anchor_date: str, time_zone: Optional[str] = None) -> Dict[str, Any]:
    zone = _zone(time_zone)
    window = range_for_view(ViewMode(view.lower()), _require_date(anchor_date, "anchor_date"), zone)
    return serialize_window(window, zone, get_settings().cache.prefix)


@register_api(
    "calendar_outside_business_hours",
    description="Check whether an activity falls outside the facility's business hours.",
    category="calendar",
    tags=("business-hours", "read"),
)
def calendar_outside_business_hours(
    start_at: str,
    end_at: str,
    time_zone: Optional[str] = None,
    business_hours: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    facility = get_settings().facility
    if business_hours is None:
        hours = BusinessHours(
            start=facility.business_hours_start,
            end=facility.business_hours_end,
            days=facility.business_days,
        )
    else:
        hours = BusinessHours.parse(business_hours)
    outside = is_outside_business_hours(
        parse_instant(start_at),
        parse_instant(end_at),
        _zone(time_zone),
        hours,
    )
    return {"outsideBusinessHours": outside}


@register_api(
    "calendar_filter_events",
    description="Filter activities by location, template category and a free-text search.",
    category="calendar",
    tags=("filter", "read"),
)
def calendar_filter_events(
    events: List[Dict[str, Any]],
    templates: Optional[List[Dict[str, Any]]] = None,
    location: str = ALL_LOCATIONS,
    categories: Optional[List[str]] = None,
    query: str = "",
) -> Dict[str, Any]:
    parsed = _parse_events(events)
    library: dict[str, CalendarTemplate] = {}
    for index, record in enumerate(templates or []):
        if not isinstance(record, dict) or "id" not in record:
            raise ValueError(f"Template #{index} must be an object with an id.")
        template = CalendarTemplate.from_record(record)
        library[template.id] = template
    kept = filter_events(parsed, library, location=location, categories=categories or (), query=query)
    return {
        "events": [serialize_event(event) for event in kept],
        "locations": event_locations(parsed),
    }
