"""Pure scheduling logic: time zones, conflicts, layout, recurrence and view ranges."""

from .conflicts import (
    BusinessHours,
    conflicting_event_ids,
    detect_conflicts,
    events_touching_day,
    has_time_overlap,
    is_outside_business_hours,
)
from .filters import EventFilter, filter_events
from .layout import EventLayout, current_time_offset, grid_slots, group_by_day, layout_day
from .ranges import CalendarWindow, adjacent_windows, api_view, range_for_view, shift_anchor
from .recurrence import RecurrenceDescriptor, RepeatSettings, build_recurrence
from .timezone import (
    date_key,
    minutes_of_day,
    minutes_to_time,
    resolve_zone,
    to_instant,
    zoned_start_of_day,
)

__all__ = [
    "BusinessHours",
    "CalendarWindow",
    "EventFilter",
    "EventLayout",
    "RecurrenceDescriptor",
    "RepeatSettings",
    "adjacent_windows",
    "api_view",
    "build_recurrence",
    "conflicting_event_ids",
    "current_time_offset",
    "date_key",
    "detect_conflicts",
    "events_touching_day",
    "filter_events",
    "grid_slots",
    "group_by_day",
    "has_time_overlap",
    "is_outside_business_hours",
    "layout_day",
    "minutes_of_day",
    "minutes_to_time",
    "range_for_view",
    "resolve_zone",
    "shift_anchor",
    "to_instant",
    "zoned_start_of_day",
]
