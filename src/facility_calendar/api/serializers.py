from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.layout import EventLayout
from ..core.ranges import RANGE_CACHE_PREFIX, CalendarWindow
from ..domain import CalendarEvent
from .models import EventPayload, LayoutPayload, WindowPayload


def serialize_event(event: CalendarEvent) -> Dict[str, Any]:
    return EventPayload.from_domain(event).model_dump(by_alias=True)


def serialize_layout(layout: EventLayout) -> Dict[str, Any]:
    return LayoutPayload.from_domain(layout).model_dump(by_alias=True)


def serialize_window(
    window: CalendarWindow,
    zone: Optional[str],
    prefix: str = RANGE_CACHE_PREFIX,
) -> Dict[str, Any]:
    return WindowPayload.from_domain(window, zone, prefix).model_dump(by_alias=True)
