"""Drag, resize and drawer sessions for the calendar grid.

Only one session is ever active. Starting any session replaces whatever was
running before it, so a drag can never overlap a resize.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple, Union

import orjson

from ..config import GridSettings
from ..domain import CalendarEvent, DragKind
from .drawer import DrawerState

logger = logging.getLogger(__name__)

KEY_UP = "ArrowUp"
KEY_DOWN = "ArrowDown"
KEY_LEFT = "ArrowLeft"
KEY_RIGHT = "ArrowRight"


@dataclass(frozen=True)
class DragSession:
    kind: DragKind
    id: str


@dataclass(slots=True)
class ResizeSession:
    event_id: str
    date_key: str
    start_minutes: int
    original_end_minutes: int
    pointer_anchor: float
    snapshot: Tuple[CalendarEvent, ...]
    preview_end_minutes: int


@dataclass(slots=True)
class DrawerSession:
    drawer: DrawerState


Session = Union[DragSession, ResizeSession, DrawerSession]


@dataclass(frozen=True)
class DropTarget:
    kind: DragKind
    id: str
    date_key: str
    # None keeps the source event's own start time (month cells have no rows).
    start_minutes: Optional[int]


@dataclass(frozen=True)
class ResizeRelease:
    event_id: str
    date_key: str
    start_minutes: int
    end_minutes: int
    snapshot: Tuple[CalendarEvent, ...]


def encode_drag_payload(kind: DragKind, identifier: str) -> str:
    return orjson.dumps({"type": DragKind(kind).value, "id": identifier}).decode("utf-8")


def decode_drag_payload(raw: Optional[Union[str, bytes]]) -> Optional[DragSession]:
    if not raw:
        return None
    try:
        parsed = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.debug("Ignoring drop with unreadable payload %r", raw)
        return None
    if not isinstance(parsed, dict):
        return None
    identifier = parsed.get("id")
    try:
        kind = DragKind(parsed.get("type"))
    except ValueError:
        return None
    if not isinstance(identifier, str) or not identifier:
        return None
    return DragSession(kind=kind, id=identifier)


@dataclass
class InteractionController:
    grid: GridSettings
    session: Optional[Session] = field(default=None)

    def _replace(self, session: Optional[Session]) -> None:
        if self.session is not None and session is not None:
            logger.debug("Replacing active %s", type(self.session).__name__)
        self.session = session

    def cancel(self) -> None:
        self._replace(None)

    # drag and drop -------------------------------------------------------

    def begin_drag(self, kind: DragKind, identifier: str) -> str:
        session = DragSession(kind=DragKind(kind), id=identifier)
        self._replace(session)
        return encode_drag_payload(session.kind, session.id)

    def slot_minutes_at(self, offset_y: float) -> int:
        index = math.floor(offset_y / self.grid.slot_height)
        index = max(0, min(self.grid.slot_count - 1, index))
        return self.grid.start_minutes + index * self.grid.slot_minutes

    def drop(
        self,
        raw: Optional[Union[str, bytes]],
        date_key: str,
        offset_y: Optional[float] = None,
        *,
        use_default_time: bool = False,
    ) -> Optional[DropTarget]:
        """Resolve a drop onto a day column.

        Without ``offset_y`` (a month cell) templates land at the default hour
        and events keep their own start time.
        """

        payload = decode_drag_payload(raw)
        if payload is None and isinstance(self.session, DragSession):
            payload = self.session
        if isinstance(self.session, DragSession):
            self._replace(None)
        if payload is None:
            return None

        start: Optional[int]
        if use_default_time:
            start = self.grid.default_drop_hour * 60
        elif offset_y is not None:
            start = self.slot_minutes_at(offset_y)
        elif payload.kind is DragKind.TEMPLATE:
            start = self.grid.default_drop_hour * 60
        else:
            start = None
        return DropTarget(kind=payload.kind, id=payload.id, date_key=date_key, start_minutes=start)

    # resize ----------------------------------------------------------------

    def begin_resize(
        self,
        event_id: str,
        date_key: str,
        start_minutes: int,
        end_minutes: int,
        pointer_y: float,
        snapshot: Sequence[CalendarEvent],
    ) -> ResizeSession:
        session = ResizeSession(
            event_id=event_id,
            date_key=date_key,
            start_minutes=start_minutes,
            original_end_minutes=end_minutes,
            pointer_anchor=pointer_y,
            snapshot=tuple(snapshot),
            preview_end_minutes=end_minutes,
        )
        self._replace(session)
        return session

    def pointer_move(self, pointer_y: float) -> Optional[int]:
        session = self.session
        if not isinstance(session, ResizeSession):
            return None
        delta_slots = round((pointer_y - session.pointer_anchor) / self.grid.slot_height)
        proposed = session.original_end_minutes + delta_slots * self.grid.slot_minutes
        low = session.start_minutes + self.grid.slot_minutes
        session.preview_end_minutes = max(low, min(self.grid.end_minutes, proposed))
        return session.preview_end_minutes

    def release(self) -> Optional[ResizeRelease]:
        """End the resize using the live preview; ``None`` when the end did not move."""

        session = self.session
        if not isinstance(session, ResizeSession):
            return None
        self._replace(None)
        if session.preview_end_minutes == session.original_end_minutes:
            return None
        return ResizeRelease(
            event_id=session.event_id,
            date_key=session.date_key,
            start_minutes=session.start_minutes,
            end_minutes=session.preview_end_minutes,
            snapshot=session.snapshot,
        )

    def preview_map(self) -> Dict[str, int]:
        if isinstance(self.session, ResizeSession):
            return {self.session.event_id: self.session.preview_end_minutes}
        return {}

    # drawer ----------------------------------------------------------------

    def open_drawer(self, drawer: DrawerState) -> DrawerState:
        self._replace(DrawerSession(drawer=drawer))
        return drawer

    def close_drawer(self) -> None:
        if isinstance(self.session, DrawerSession):
            self._replace(None)

    @property
    def drawer(self) -> Optional[DrawerState]:
        if isinstance(self.session, DrawerSession):
            return self.session.drawer
        return None

    # keyboard --------------------------------------------------------------

    def keyboard_move(
        self,
        start_minutes: int,
        day_index: int,
        key: str,
        day_count: int,
    ) -> Optional[Tuple[int, int]]:
        """Arrow-key step over the grid as ``(day_index, start_minutes)``; ``None`` if nothing moved."""

        last_slot = self.grid.start_minutes + (self.grid.slot_count - 1) * self.grid.slot_minutes
        next_day, next_start = day_index, start_minutes
        if key == KEY_UP:
            next_start -= self.grid.slot_minutes
        elif key == KEY_DOWN:
            next_start += self.grid.slot_minutes
        elif key == KEY_LEFT:
            next_day -= 1
        elif key == KEY_RIGHT:
            next_day += 1
        else:
            return None
        next_day = max(0, min(max(0, day_count - 1), next_day))
        next_start = max(self.grid.start_minutes, min(last_slot, next_start))
        if (next_day, next_start) == (day_index, start_minutes):
            return None
        return next_day, next_start


__all__ = [
    "DragSession",
    "DrawerSession",
    "DropTarget",
    "InteractionController",
    "ResizeRelease",
    "ResizeSession",
    "decode_drag_payload",
    "encode_drag_payload",
]
