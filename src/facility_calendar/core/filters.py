"""Display filters applied to loaded events before layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional

from ..domain import CalendarEvent, CalendarTemplate, event_category

ALL_LOCATIONS = "ALL"


@dataclass(slots=True)
class EventFilter:
    location: str = ALL_LOCATIONS
    categories: List[str] = field(default_factory=list)
    query: str = ""

    @property
    def active(self) -> bool:
        return self.location != ALL_LOCATIONS or bool(self.categories) or bool(self.query.strip())


def filter_events(
    events: Iterable[CalendarEvent],
    templates: Mapping[str, CalendarTemplate],
    *,
    location: Optional[str] = None,
    categories: Iterable[str] = (),
    query: str = "",
) -> List[CalendarEvent]:
    """Keep events matching the location, any of the categories and the search text.

    The search is a case-insensitive substring match over title, location and
    the category derived from the event's template.
    """

    wanted = set(categories)
    needle = query.strip().lower()
    kept: list[CalendarEvent] = []
    for event in events:
        if location and location != ALL_LOCATIONS and event.location != location:
            continue
        category = event_category(event, templates)
        if wanted and category not in wanted:
            continue
        if needle and not any(needle in text.lower() for text in (event.title, event.location, category)):
            continue
        kept.append(event)
    return kept


def apply_filter(
    events: Iterable[CalendarEvent],
    templates: Mapping[str, CalendarTemplate],
    event_filter: EventFilter,
) -> List[CalendarEvent]:
    return filter_events(
        events,
        templates,
        location=event_filter.location,
        categories=event_filter.categories,
        query=event_filter.query,
    )


def event_locations(events: Iterable[CalendarEvent]) -> List[str]:
    """Distinct locations for the location picker, sorted case-insensitively."""

    return sorted({event.location for event in events}, key=str.casefold)


__all__ = ["ALL_LOCATIONS", "EventFilter", "apply_filter", "event_locations", "filter_events"]
