"""Application services orchestrating data access and scheduling logic."""

from __future__ import annotations

from .calendar import CalendarService, CalendarState, ConflictState, MutationResult, Notification
from .context import ServiceContext
from .drawer import DrawerState, ScheduleValidationError
from .interactions import DropTarget, InteractionController, ResizeRelease

__all__ = [
    "CalendarService",
    "CalendarState",
    "ConflictState",
    "DrawerState",
    "DropTarget",
    "InteractionController",
    "MutationResult",
    "Notification",
    "ResizeRelease",
    "ScheduleValidationError",
    "ServiceContext",
]
