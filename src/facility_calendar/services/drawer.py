"""Form state behind the schedule/edit drawer and the payloads it submits."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.recurrence import RepeatSettings, build_recurrence
from ..core.timezone import (
    date_key,
    local_fold,
    minutes_of_day,
    minutes_to_time,
    parse_clock,
    parse_date_key,
    to_instant,
)
from ..domain import (
    Adaptations,
    CalendarEvent,
    CalendarTemplate,
    ChecklistItem,
    DrawerMode,
    EditScope,
    iso_instant,
)

DEFAULT_LOCATION = "Activity Room"
DEFAULT_DURATION_MINUTES = 60
UNTITLED_ACTIVITY = "Untitled Activity"


class ScheduleValidationError(ValueError):
    """Raised when drawer input cannot be turned into a valid request."""


@dataclass(slots=True)
class DrawerState:
    mode: DrawerMode
    date_key: str
    start_time: str
    end_time: str
    title: str = ""
    location: str = DEFAULT_LOCATION
    event_id: Optional[str] = None
    template_id: Optional[str] = None
    series_id: Optional[str] = None
    checklist_items: List[str] = field(default_factory=list)
    adaptations: Adaptations = field(default_factory=Adaptations)
    scope: EditScope = EditScope.INSTANCE
    repeat: RepeatSettings = field(default_factory=RepeatSettings)
    start_fold: int = 0
    end_fold: int = 0

    @property
    def notes(self) -> str:
        return self.adaptations.notes

    def add_checklist_item(self, text: str) -> bool:
        text = text.strip()
        if not text:
            return False
        self.checklist_items.append(text)
        return True

    def move_checklist_item(self, index: int, direction: int) -> bool:
        target = index + direction
        if not (0 <= index < len(self.checklist_items)) or not (0 <= target < len(self.checklist_items)):
            return False
        item = self.checklist_items.pop(index)
        self.checklist_items.insert(target, item)
        return True

    def remove_checklist_item(self, index: int) -> bool:
        if not 0 <= index < len(self.checklist_items):
            return False
        del self.checklist_items[index]
        return True


def _checklist_texts(items: List[ChecklistItem]) -> List[str]:
    return [item.text for item in items]


def drawer_for_manual(
    date_key_value: str,
    start_minutes: int,
    *,
    location: str = DEFAULT_LOCATION,
    title: str = "",
    template_id: Optional[str] = None,
    checklist_items: Optional[List[str]] = None,
    adaptations: Optional[Adaptations] = None,
) -> DrawerState:
    return DrawerState(
        mode=DrawerMode.CREATE,
        date_key=date_key_value,
        start_time=minutes_to_time(start_minutes),
        end_time=minutes_to_time(start_minutes + DEFAULT_DURATION_MINUTES),
        title=title,
        location=location,
        template_id=template_id,
        checklist_items=list(checklist_items or []),
        adaptations=adaptations if adaptations is not None else Adaptations(),
    )


def drawer_from_template(
    template: CalendarTemplate,
    date_key_value: str,
    start_minutes: int,
    *,
    location: str = DEFAULT_LOCATION,
) -> DrawerState:
    return drawer_for_manual(
        date_key_value,
        start_minutes,
        location=location,
        title=template.title,
        template_id=template.id,
        checklist_items=_checklist_texts(template.default_checklist),
        adaptations=copy.deepcopy(template.adaptations),
    )


def _from_event(event: CalendarEvent, zone: Optional[str], *, mode: DrawerMode, title: str) -> DrawerState:
    return DrawerState(
        mode=mode,
        date_key=date_key(event.start_at, zone),
        start_time=minutes_to_time(minutes_of_day(event.start_at, zone)),
        end_time=minutes_to_time(minutes_of_day(event.end_at, zone)),
        title=title,
        location=event.location,
        event_id=event.id if mode is DrawerMode.EDIT else None,
        template_id=event.template_id,
        series_id=event.series_id if mode is DrawerMode.EDIT else None,
        checklist_items=_checklist_texts(event.checklist),
        adaptations=copy.deepcopy(event.adaptations),
        start_fold=local_fold(event.start_at, zone),
        end_fold=local_fold(event.end_at, zone),
    )


def drawer_for_edit(event: CalendarEvent, zone: Optional[str]) -> DrawerState:
    return _from_event(event, zone, mode=DrawerMode.EDIT, title=event.title)


def drawer_duplicate(event: CalendarEvent, zone: Optional[str]) -> DrawerState:
    return _from_event(event, zone, mode=DrawerMode.CREATE, title=f"{event.title} (Copy)")


def drawer_instants(drawer: DrawerState, zone: Optional[str]) -> tuple[datetime, datetime]:
    """Resolve the drawer's wall-clock fields, rejecting anything that is not a forward range."""

    if parse_date_key(drawer.date_key) is None:
        raise ScheduleValidationError("Choose a valid date.")
    if parse_clock(drawer.start_time) is None or parse_clock(drawer.end_time) is None:
        raise ScheduleValidationError("Start and end times must be HH:MM.")
    start_at = to_instant(drawer.date_key, drawer.start_time, zone, fold=drawer.start_fold)
    end_at = to_instant(drawer.date_key, drawer.end_time, zone, fold=drawer.end_fold)
    if end_at <= start_at:
        raise ScheduleValidationError("End time must be after start time.")
    return start_at, end_at


def build_activity_payload(
    drawer: DrawerState,
    zone: Optional[str],
    *,
    default_location: str = DEFAULT_LOCATION,
) -> Dict[str, Any]:
    start_at, end_at = drawer_instants(drawer, zone)
    payload: Dict[str, Any] = {
        "title": drawer.title.strip() or UNTITLED_ACTIVITY,
        "startAt": iso_instant(start_at),
        "endAt": iso_instant(end_at),
        "location": drawer.location.strip() or default_location,
        "checklist": [item.to_record() for item in ChecklistItem.from_texts(drawer.checklist_items)],
        "adaptationsEnabled": drawer.adaptations.to_record(),
    }
    if drawer.template_id:
        payload["templateId"] = drawer.template_id
    if drawer.mode is DrawerMode.EDIT:
        payload["scope"] = EditScope.INSTANCE.value
    else:
        recurrence = build_recurrence(drawer.repeat, drawer.date_key, zone)
        if recurrence is not None:
            payload["recurrence"] = recurrence.to_payload()
    return payload


def build_series_payload(drawer: DrawerState, *, default_location: str = DEFAULT_LOCATION) -> Dict[str, Any]:
    return {
        "scope": EditScope.SERIES.value,
        "title": drawer.title.strip() or UNTITLED_ACTIVITY,
        "location": drawer.location.strip() or default_location,
    }


__all__ = [
    "DEFAULT_DURATION_MINUTES",
    "DEFAULT_LOCATION",
    "DrawerState",
    "ScheduleValidationError",
    "UNTITLED_ACTIVITY",
    "build_activity_payload",
    "build_series_payload",
    "drawer_duplicate",
    "drawer_for_edit",
    "drawer_for_manual",
    "drawer_from_template",
    "drawer_instants",
]
