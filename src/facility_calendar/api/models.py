from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.layout import EventLayout
from ..core.ranges import RANGE_CACHE_PREFIX, CalendarWindow, api_view
from ..domain import CalendarEvent, iso_instant


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    start_at: str = Field(alias="startAt")
    end_at: str = Field(alias="endAt")
    location: str = ""
    template_id: Optional[str] = Field(default=None, alias="templateId")
    series_id: Optional[str] = Field(default=None, alias="seriesId")
    occurrence_key: Optional[str] = Field(default=None, alias="occurrenceKey")
    is_override: bool = Field(default=False, alias="isOverride")
    conflict_override: bool = Field(default=False, alias="conflictOverride")
    checklist: List[Dict[str, Any]] = Field(default_factory=list)
    adaptations_enabled: Dict[str, Any] = Field(default_factory=dict, alias="adaptationsEnabled")

    @classmethod
    def from_domain(cls, event: CalendarEvent) -> "EventPayload":
        return cls.model_validate(event.to_record())


class LayoutPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: EventPayload
    lane: int
    lane_count: int = Field(alias="laneCount")
    start_minutes: int = Field(alias="startMinutes")
    end_minutes: int = Field(alias="endMinutes")
    top: float
    height: float
    left_pct: float = Field(alias="leftPct")
    width_pct: float = Field(alias="widthPct")
    is_conflict: bool = Field(alias="isConflict")
    compact: bool
    tight: bool
    has_checklist: bool = Field(alias="hasChecklist")
    has_adaptations: bool = Field(alias="hasAdaptations")
    time_range_label: str = Field(alias="timeRangeLabel")

    @classmethod
    def from_domain(cls, layout: EventLayout) -> "LayoutPayload":
        return cls(
            event=EventPayload.from_domain(layout.event),
            lane=layout.lane,
            lane_count=layout.lane_count,
            start_minutes=layout.start_minutes,
            end_minutes=layout.end_minutes,
            top=layout.top,
            height=layout.height,
            left_pct=layout.left_pct,
            width_pct=layout.width_pct,
            is_conflict=layout.is_conflict,
            compact=layout.compact,
            tight=layout.tight,
            has_checklist=layout.has_checklist,
            has_adaptations=layout.has_adaptations,
            time_range_label=layout.time_range_label,
        )


class WindowPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: str
    end: str
    view: str
    api_view: str = Field(alias="apiView")
    anchor: str
    cache_key: str = Field(alias="cacheKey")
    days: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(
        cls,
        window: CalendarWindow,
        zone: Optional[str],
        prefix: str = RANGE_CACHE_PREFIX,
    ) -> "WindowPayload":
        return cls(
            start=iso_instant(window.start),
            end=iso_instant(window.end),
            view=window.view.value,
            api_view=api_view(window.view),
            anchor=window.anchor,
            cache_key=window.cache_key(prefix),
            days=window.day_keys(zone),
        )
