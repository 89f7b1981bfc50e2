"""Domain models for facility calendar scheduling."""

from __future__ import annotations

from .enums import (
    DragKind,
    DrawerMode,
    EditScope,
    MutationPhase,
    NotificationLevel,
    RecurrenceFrequency,
    RepeatEndMode,
    ViewMode,
)
from .models import (
    AdaptationToggle,
    Adaptations,
    CalendarEvent,
    CalendarTemplate,
    ChecklistItem,
    event_category,
    iso_instant,
    parse_instant,
)

__all__ = [
    "AdaptationToggle",
    "Adaptations",
    "CalendarEvent",
    "CalendarTemplate",
    "ChecklistItem",
    "DragKind",
    "DrawerMode",
    "EditScope",
    "MutationPhase",
    "NotificationLevel",
    "RecurrenceFrequency",
    "RepeatEndMode",
    "ViewMode",
    "event_category",
    "iso_instant",
    "parse_instant",
]
