"""Geometry for overlapping events in a single day column."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import GridSettings
from ..domain import CalendarEvent
from .timezone import date_key, minutes_of_day, minutes_to_label


@dataclass(frozen=True)
class EventLayout:
    event: CalendarEvent
    lane: int
    lane_count: int
    start_minutes: int
    end_minutes: int
    top: float
    height: float
    left_pct: float
    width_pct: float
    is_conflict: bool
    compact: bool
    tight: bool
    has_checklist: bool
    has_adaptations: bool
    time_range_label: str


@dataclass(slots=True)
class PlacedEvent:
    event: CalendarEvent
    start_minutes: int
    end_minutes: int
    lane: int = 0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def overlap_clusters(placed: Sequence[PlacedEvent]) -> List[List[PlacedEvent]]:
    """Split rows sorted by start into groups connected by time overlap.

    A group closes once the next row starts at or after every end seen so far.
    """

    clusters: list[list[PlacedEvent]] = []
    cluster_end = -1
    for row in placed:
        if not clusters or row.start_minutes >= cluster_end:
            clusters.append([])
            cluster_end = row.end_minutes
        clusters[-1].append(row)
        cluster_end = max(cluster_end, row.end_minutes)
    return clusters


def group_by_day(events: Iterable[CalendarEvent], zone: Optional[str]) -> Dict[str, List[CalendarEvent]]:
    grouped: Dict[str, List[CalendarEvent]] = {}
    for event in events:
        grouped.setdefault(date_key(event.start_at, zone), []).append(event)
    for rows in grouped.values():
        rows.sort(key=lambda item: item.start_at)
    return grouped


def grid_slots(grid: GridSettings) -> List[dict]:
    return [
        {"minute": minute, "label": minutes_to_label(minute)}
        for minute in range(grid.start_minutes, grid.end_minutes + 1, grid.slot_minutes)
    ]


def normalize_minutes(
    event: CalendarEvent,
    zone: Optional[str],
    grid: GridSettings,
    *,
    end_override: Optional[int] = None,
) -> tuple[int, int]:
    """Zone-local ``(start, end)`` minutes clamped into the visible grid."""

    start = minutes_of_day(event.start_at, zone)
    if end_override is not None:
        end = end_override
    elif date_key(event.end_at, zone) != date_key(event.start_at, zone):
        end = grid.end_minutes
    else:
        end = minutes_of_day(event.end_at, zone)

    start = int(_clamp(start, grid.start_minutes, grid.end_minutes - grid.slot_minutes))
    end = int(_clamp(max(start + grid.slot_minutes, end), start + grid.slot_minutes, grid.end_minutes))
    return start, end


def assign_lanes(placed: List[PlacedEvent]) -> int:
    """Greedy interval colouring over rows sorted by start; returns the lane count."""

    lane_ends: list[int] = []
    for row in placed:
        for index, lane_end in enumerate(lane_ends):
            if lane_end <= row.start_minutes:
                row.lane = index
                lane_ends[index] = row.end_minutes
                break
        else:
            row.lane = len(lane_ends)
            lane_ends.append(row.end_minutes)
    return len(lane_ends)


def layout_day(
    events: Sequence[CalendarEvent],
    zone: Optional[str],
    grid: GridSettings,
    *,
    conflicts: AbstractSet[str] = frozenset(),
    preview: Optional[Mapping[str, int]] = None,
) -> List[EventLayout]:
    """Lay out one day's events.

    ``preview`` maps an event id to a live end minute (an in-progress resize)
    which takes precedence over the persisted end time.
    """

    if not events:
        return []

    preview = preview or {}
    placed: list[PlacedEvent] = []
    for event in events:
        start, end = normalize_minutes(event, zone, grid, end_override=preview.get(event.id))
        placed.append(PlacedEvent(event=event, start_minutes=start, end_minutes=end))
    placed.sort(key=lambda row: (row.start_minutes, row.end_minutes, row.event.title))
    assign_lanes(placed)

    cluster_lanes: Dict[int, List[int]] = {}
    for cluster in overlap_clusters(placed):
        lanes = sorted({row.lane for row in cluster})
        for row in cluster:
            cluster_lanes[id(row)] = lanes

    layouts: list[EventLayout] = []
    for row in placed:
        lanes = cluster_lanes[id(row)]
        position = lanes.index(row.lane)
        lane_count = len(lanes)
        width = max(
            grid.min_width_pct,
            (100 - grid.column_gap_pct * (lane_count - 1)) / lane_count,
        )
        left = _clamp(position * (width + grid.column_gap_pct), 0, max(0.0, 100 - width))

        raw_top = (row.start_minutes - grid.start_minutes) / grid.slot_minutes * grid.slot_height
        raw_height = (row.end_minutes - row.start_minutes) / grid.slot_minutes * grid.slot_height
        height = max(raw_height - grid.vertical_gap_px, grid.min_event_height)

        layouts.append(
            EventLayout(
                event=row.event,
                lane=row.lane,
                lane_count=lane_count,
                start_minutes=row.start_minutes,
                end_minutes=row.end_minutes,
                top=raw_top + grid.vertical_gap_px / 2,
                height=height,
                left_pct=left,
                width_pct=width,
                is_conflict=row.event.id in conflicts,
                compact=height < 92,
                tight=height < 68,
                has_checklist=bool(row.event.checklist),
                has_adaptations=row.event.adaptations.any_enabled,
                time_range_label=f"{minutes_to_label(row.start_minutes)} - {minutes_to_label(row.end_minutes)}",
            )
        )
    return layouts


def current_time_offset(now: datetime, zone: Optional[str], grid: GridSettings) -> float:
    total_height = grid.slot_count * grid.slot_height
    top = (minutes_of_day(now, zone) - grid.start_minutes) / grid.slot_minutes * grid.slot_height
    return _clamp(top, 0, total_height - 2)


__all__ = [
    "EventLayout",
    "PlacedEvent",
    "assign_lanes",
    "current_time_offset",
    "grid_slots",
    "group_by_day",
    "layout_day",
    "normalize_minutes",
    "overlap_clusters",
]
