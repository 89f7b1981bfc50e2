from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from ..core.conflicts import BusinessHours, conflicting_event_ids, is_outside_business_hours
from ..core.filters import EventFilter, apply_filter, event_locations
from ..core.layout import EventLayout, group_by_day, layout_day, normalize_minutes
from ..core.ranges import CalendarWindow, adjacent_windows
from ..core.timezone import date_key, instant_at_minutes, local_fold, minutes_of_day
from ..data import CalendarApiError, parse_error_message
from ..data.repositories import ActivityRepository, MutationRequest
from ..data.schemas import ConflictResponse, ConflictSummary
from ..domain import (
    CalendarEvent,
    CalendarTemplate,
    DragKind,
    DrawerMode,
    EditScope,
    MutationPhase,
    NotificationLevel,
    iso_instant,
)
from .context import ServiceContext
from .drawer import (
    DrawerState,
    ScheduleValidationError,
    build_activity_payload,
    build_series_payload,
    drawer_duplicate,
    drawer_for_edit,
    drawer_for_manual,
    drawer_from_template,
    drawer_instants,
)
from .interactions import InteractionController, ResizeSession

logger = logging.getLogger(__name__)

CONFLICT_FALLBACK = "Scheduling conflict detected."
GENERIC_FAILURE = ("Calendar update failed", "Please try again.")
MOVE_FAILURE = ("Move failed", "Could not move activity.")
RESIZE_FAILURE = ("Resize failed", "Could not resize activity.")
DELETE_FAILURE = ("Delete failed", "Could not delete activity.")
SKIP_FAILURE = ("Skip failed", "Could not skip this occurrence.")


@dataclass(slots=True)
class Notification:
    level: NotificationLevel
    title: str
    message: str = ""


@dataclass(slots=True)
class ConflictState:
    request: MutationRequest
    conflicts: List[ConflictSummary]
    outside_business_hours: bool
    message: str
    success_message: str
    close_drawer_on_success: bool = False

    @property
    def endpoint(self) -> str:
        return self.request.endpoint

    @property
    def method(self) -> str:
        return self.request.method


@dataclass(slots=True)
class CalendarState:
    events: List[CalendarEvent] = field(default_factory=list)
    visible: Optional[CalendarWindow] = None
    loading: bool = False
    error: Optional[str] = None
    conflict: Optional[ConflictState] = None
    notifications: List[Notification] = field(default_factory=list)
    drawer: Optional[DrawerState] = None
    event_filter: EventFilter = field(default_factory=EventFilter)


@dataclass(slots=True)
class MutationResult:
    phase: MutationPhase = MutationPhase.IDLE
    history: List[MutationPhase] = field(default_factory=lambda: [MutationPhase.IDLE])
    status_code: Optional[int] = None
    message: str = ""

    def advance(self, phase: MutationPhase) -> "MutationResult":
        self.phase = phase
        self.history.append(phase)
        return self

    @property
    def committed(self) -> bool:
        return self.phase is MutationPhase.COMMITTED

    @property
    def rolled_back(self) -> bool:
        return self.phase in (MutationPhase.ROLLED_BACK_CONFLICT, MutationPhase.ROLLED_BACK_ERROR)


@dataclass(slots=True)
class CalendarService:
    """Owns the visible events and turns user intents into server mutations.

    Moves and resizes are applied to ``state.events`` before the request goes
    out and restored from a snapshot if the server refuses them. Creates and
    edits wait for the server. Every successful write invalidates the range
    cache and refetches the visible window.
    """

    context: ServiceContext
    state: CalendarState = field(default_factory=CalendarState)
    interactions: InteractionController = field(init=False)
    templates: Dict[str, CalendarTemplate] = field(default_factory=dict)
    _range_task: Optional["asyncio.Task[List[CalendarEvent]]"] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.interactions = InteractionController(self.context.settings.grid)

    @property
    def activities(self) -> ActivityRepository:
        return self.context.activities

    @property
    def zone(self) -> str:
        return self.context.zone

    @property
    def business_hours(self) -> BusinessHours:
        facility = self.context.settings.facility
        return BusinessHours(
            start=facility.business_hours_start,
            end=facility.business_hours_end,
            days=facility.business_days,
        )

    def set_templates(self, templates: Iterable[CalendarTemplate]) -> None:
        self.templates = {template.id: template for template in templates}

    def load_templates(self, records: Iterable[Mapping[str, Any]]) -> List[CalendarTemplate]:
        """Replace the template library from wire records, skipping malformed ones."""

        templates: list[CalendarTemplate] = []
        for record in records:
            try:
                templates.append(CalendarTemplate.from_record(dict(record)))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed template record: %s", exc)
        self.set_templates(templates)
        return templates

    def set_filter(
        self,
        *,
        location: Optional[str] = None,
        categories: Optional[Iterable[str]] = None,
        query: Optional[str] = None,
    ) -> EventFilter:
        """Update the display filter; arguments left as ``None`` keep their value."""

        current = self.state.event_filter
        self.state.event_filter = EventFilter(
            location=current.location if location is None else location,
            categories=current.categories if categories is None else list(categories),
            query=current.query if query is None else query,
        )
        return self.state.event_filter

    def clear_filter(self) -> None:
        self.state.event_filter = EventFilter()

    def find_event(self, event_id: str) -> Optional[CalendarEvent]:
        return next((event for event in self.state.events if event.id == event_id), None)

    # derived views ---------------------------------------------------------

    def conflict_ids(self) -> Set[str]:
        return conflicting_event_ids(self.state.events, self.zone)

    def visible_events(self) -> List[CalendarEvent]:
        return apply_filter(self.state.events, self.templates, self.state.event_filter)

    def locations(self) -> List[str]:
        return event_locations(self.state.events)

    def day_layout(self, key: str) -> List[EventLayout]:
        # Conflicts are computed on every loaded event, hidden ones included.
        day_events = group_by_day(self.visible_events(), self.zone).get(key, [])
        return layout_day(
            day_events,
            self.zone,
            self.context.settings.grid,
            conflicts=self.conflict_ids(),
            preview=self.interactions.preview_map(),
        )

    def outside_business_hours(self, event: CalendarEvent) -> bool:
        return is_outside_business_hours(event.start_at, event.end_at, self.zone, self.business_hours)

    # notifications -----------------------------------------------------------

    def _notify(self, level: NotificationLevel, title: str, message: str = "") -> None:
        self.state.notifications.append(Notification(level=level, title=title, message=message))

    def drain_notifications(self) -> List[Notification]:
        drained, self.state.notifications = self.state.notifications, []
        return drained

    # range loading -----------------------------------------------------------

    async def load_range(self, window: CalendarWindow, *, force: bool = False) -> Optional[List[CalendarEvent]]:
        """Fetch ``window`` and make it the visible range.

        A newer call cancels an older one still in flight. Results that no
        longer match the visible window are dropped without touching state.
        """

        previous = self._range_task
        if previous is not None and not previous.done():
            previous.cancel()

        self.state.visible = window
        self.state.loading = True
        task = asyncio.ensure_future(self.activities.fetch_range(window, force=force))
        self._range_task = task
        try:
            events = await task
        except asyncio.CancelledError:
            if self._range_task is not task:
                logger.debug("Range fetch for %s superseded", window.range_token)
                return None
            raise
        except CalendarApiError as exc:
            if self._range_task is not task or self.state.visible != window:
                logger.debug("Ignoring failure of stale range fetch: %s", exc)
                return None
            logger.error("Unable to load calendar range %s: %s", window.range_token, exc)
            self.state.error = exc.message
            self._notify(NotificationLevel.ERROR, "Unable to load calendar", exc.message or GENERIC_FAILURE[1])
            return None
        finally:
            if self._range_task is task:
                self._range_task = None
                self.state.loading = False

        if self.state.visible != window:
            logger.debug("Discarding stale range result for %s", window.range_token)
            return None
        self.state.events = events
        self.state.error = None
        return events

    async def refresh(self) -> Optional[List[CalendarEvent]]:
        if self.state.visible is None:
            return None
        return await self.load_range(self.state.visible, force=True)

    async def prefetch_adjacent(self) -> None:
        if self.state.visible is None:
            return
        for window in adjacent_windows(self.state.visible, self.zone):
            try:
                await self.activities.fetch_range(window)
            except CalendarApiError as exc:
                logger.debug("Prefetch of %s failed: %s", window.range_token, exc)

    # mutation plumbing -------------------------------------------------------

    def _rollback(self, snapshot: Optional[Sequence[CalendarEvent]]) -> None:
        if snapshot is not None:
            self.state.events = list(snapshot)

    def _apply_locally(self, updated: CalendarEvent) -> None:
        self.state.events = [updated if event.id == updated.id else event for event in self.state.events]

    async def _submit(
        self,
        request: MutationRequest,
        *,
        result: MutationResult,
        success_message: str,
        failure: tuple[str, str],
        snapshot: Optional[Sequence[CalendarEvent]] = None,
        close_drawer: bool = False,
    ) -> MutationResult:
        result.advance(MutationPhase.AWAITING_SERVER)
        try:
            response = await self.activities.submit(request)
        except CalendarApiError as exc:
            logger.warning("%s %s failed in transport, rolling back: %s", request.method, request.endpoint, exc)
            self._rollback(snapshot)
            self._notify(NotificationLevel.ERROR, failure[0], failure[1])
            result.message = failure[1]
            return result.advance(MutationPhase.ROLLED_BACK_ERROR)

        result.status_code = response.status_code
        if response.is_conflict:
            self._rollback(snapshot)
            parsed = ConflictResponse.parse(response.payload)
            message = parse_error_message(response.payload, CONFLICT_FALLBACK)
            logger.warning("%s %s rejected with a conflict: %s", request.method, request.endpoint, message)
            self.state.conflict = ConflictState(
                request=request,
                conflicts=parsed.conflicts,
                outside_business_hours=parsed.outside_business_hours,
                message=message,
                success_message=success_message,
                close_drawer_on_success=close_drawer,
            )
            result.message = message
            return result.advance(MutationPhase.ROLLED_BACK_CONFLICT)

        if not response.ok:
            self._rollback(snapshot)
            message = parse_error_message(response.payload, failure[1])
            logger.warning(
                "%s %s failed with %d, rolling back: %s",
                request.method,
                request.endpoint,
                response.status_code,
                message,
            )
            self._notify(NotificationLevel.ERROR, failure[0], message)
            result.message = message
            return result.advance(MutationPhase.ROLLED_BACK_ERROR)

        logger.info("%s %s committed", request.method, request.endpoint)
        if close_drawer:
            self.close_drawer()
        self._notify(NotificationLevel.SUCCESS, success_message)
        self.activities.invalidate()
        result.message = success_message
        result.advance(MutationPhase.COMMITTED)
        await self.refresh()
        return result

    def _rejected(self, title: str, message: str) -> MutationResult:
        self._notify(NotificationLevel.ERROR, title, message)
        return MutationResult(message=message)

    # mutations ---------------------------------------------------------------

    async def request_move(
        self,
        event_id: str,
        target_date_key: str,
        start_minutes: Optional[int] = None,
    ) -> MutationResult:
        source = self.find_event(event_id)
        if source is None:
            return MutationResult(message=f"Unknown activity {event_id!r}")
        if start_minutes is None:
            start_minutes = minutes_of_day(source.start_at, self.zone)

        slot = self.context.settings.grid.slot_minutes
        duration = max(slot, source.duration_minutes)
        start_at = instant_at_minutes(target_date_key, start_minutes, self.zone)
        end_at = start_at + timedelta(minutes=duration)
        payload = {
            "startAt": iso_instant(start_at),
            "endAt": iso_instant(end_at),
            "location": source.location,
        }

        snapshot = list(self.state.events)
        result = MutationResult()
        self._apply_locally(dataclasses.replace(source, start_at=start_at, end_at=end_at))
        result.advance(MutationPhase.APPLIED_LOCALLY)
        return await self._submit(
            ActivityRepository.move_request(event_id, payload),
            result=result,
            success_message="Activity moved",
            failure=MOVE_FAILURE,
            snapshot=snapshot,
        )

    async def request_resize(
        self,
        event_id: str,
        end_minutes: int,
        *,
        snapshot: Optional[Sequence[CalendarEvent]] = None,
    ) -> MutationResult:
        source = self.find_event(event_id)
        if source is None:
            return MutationResult(message=f"Unknown activity {event_id!r}")

        key = date_key(source.start_at, self.zone)
        start_at = instant_at_minutes(
            key,
            minutes_of_day(source.start_at, self.zone),
            self.zone,
            fold=local_fold(source.start_at, self.zone),
        )
        end_at = instant_at_minutes(key, end_minutes, self.zone)
        if end_at <= start_at:
            return self._rejected("Invalid time range", "End time must be after start time.")
        payload = {
            "startAt": iso_instant(start_at),
            "endAt": iso_instant(end_at),
            "location": source.location,
            "scope": EditScope.INSTANCE.value,
        }

        rollback_to = list(snapshot) if snapshot is not None else list(self.state.events)
        result = MutationResult()
        self._apply_locally(dataclasses.replace(source, start_at=start_at, end_at=end_at))
        result.advance(MutationPhase.APPLIED_LOCALLY)
        return await self._submit(
            ActivityRepository.update_request(event_id, payload),
            result=result,
            success_message="Activity resized",
            failure=RESIZE_FAILURE,
            snapshot=rollback_to,
        )

    async def request_create(
        self,
        drawer: Optional[DrawerState] = None,
        *,
        add_another: bool = False,
    ) -> MutationResult:
        drawer = drawer or self.state.drawer
        if drawer is None:
            return MutationResult(message="No drawer is open.")
        try:
            payload = build_activity_payload(
                drawer,
                self.zone,
                default_location=self.context.settings.facility.default_location,
            )
        except ScheduleValidationError as exc:
            return self._rejected("Invalid time range", str(exc))

        success = "Series scheduled" if "recurrence" in payload else "Activity saved"
        result = await self._submit(
            ActivityRepository.create_request(payload),
            result=MutationResult(),
            success_message=success,
            failure=GENERIC_FAILURE,
            close_drawer=not add_another,
        )
        if result.committed and add_another:
            _, end_at = drawer_instants(drawer, self.zone)
            self.open_drawer_for_manual(drawer.date_key, minutes_of_day(end_at, self.zone), location=drawer.location)
        return result

    async def request_edit(self, drawer: Optional[DrawerState] = None) -> MutationResult:
        drawer = drawer or self.state.drawer
        if drawer is None or drawer.mode is not DrawerMode.EDIT or not drawer.event_id:
            return MutationResult(message="No activity is being edited.")

        default_location = self.context.settings.facility.default_location
        if drawer.scope is EditScope.SERIES and drawer.series_id:
            request = ActivityRepository.series_update_request(
                drawer.series_id,
                build_series_payload(drawer, default_location=default_location),
            )
            success = "Series updated"
        else:
            try:
                payload = build_activity_payload(drawer, self.zone, default_location=default_location)
            except ScheduleValidationError as exc:
                return self._rejected("Invalid time range", str(exc))
            request = ActivityRepository.update_request(drawer.event_id, payload)
            success = "Activity updated"

        return await self._submit(
            request,
            result=MutationResult(),
            success_message=success,
            failure=GENERIC_FAILURE,
            close_drawer=True,
        )

    async def request_delete(self, event_id: str) -> MutationResult:
        request = ActivityRepository.delete_request(event_id)
        result = MutationResult().advance(MutationPhase.AWAITING_SERVER)
        try:
            response = await self.activities.submit(request)
        except CalendarApiError as exc:
            logger.warning("Delete of %s failed in transport: %s", event_id, exc)
            self._notify(NotificationLevel.ERROR, *DELETE_FAILURE)
            result.message = DELETE_FAILURE[1]
            return result.advance(MutationPhase.ROLLED_BACK_ERROR)

        result.status_code = response.status_code
        if not response.ok:
            message = parse_error_message(response.payload, DELETE_FAILURE[1])
            logger.warning("Delete of %s failed with %d: %s", event_id, response.status_code, message)
            self._notify(NotificationLevel.ERROR, DELETE_FAILURE[0], message)
            result.message = message
            return result.advance(MutationPhase.ROLLED_BACK_ERROR)

        logger.info("Deleted activity %s", event_id)
        if self.state.drawer is not None and self.state.drawer.event_id == event_id:
            self.close_drawer()
        self.state.events = [event for event in self.state.events if event.id != event_id]
        self._notify(NotificationLevel.SUCCESS, "Activity deleted")
        self.activities.invalidate()
        result.message = "Activity deleted"
        return result.advance(MutationPhase.COMMITTED)

    async def skip_occurrence(
        self,
        series_id: Optional[str] = None,
        occurrence_start: Optional[datetime] = None,
    ) -> MutationResult:
        drawer = self.state.drawer
        if series_id is None and drawer is not None:
            series_id = drawer.series_id
        if not series_id:
            return MutationResult(message="Activity is not part of a series.")
        if occurrence_start is None:
            if drawer is None:
                return MutationResult(message="No occurrence selected.")
            try:
                occurrence_start, _ = drawer_instants(drawer, self.zone)
            except ScheduleValidationError as exc:
                return self._rejected(SKIP_FAILURE[0], str(exc))

        return await self._submit(
            ActivityRepository.skip_occurrence_request(series_id, iso_instant(occurrence_start)),
            result=MutationResult(),
            success_message="Occurrence skipped",
            failure=SKIP_FAILURE,
            close_drawer=True,
        )

    async def override_conflict(self) -> MutationResult:
        conflict = self.state.conflict
        if conflict is None:
            return MutationResult(message="No conflict to override.")
        self.state.conflict = None
        logger.info("Overriding conflict for %s %s", conflict.method, conflict.endpoint)
        return await self._submit(
            conflict.request.with_override(),
            result=MutationResult(),
            success_message=f"{conflict.success_message} (override)",
            failure=GENERIC_FAILURE,
            close_drawer=conflict.close_drawer_on_success,
        )

    def dismiss_conflict(self) -> None:
        self.state.conflict = None

    # interaction entry points -----------------------------------------------

    def begin_drag(self, kind: DragKind, identifier: str) -> str:
        payload = self.interactions.begin_drag(kind, identifier)
        self.state.drawer = self.interactions.drawer
        return payload

    async def drop(
        self,
        raw: Optional[Union[str, bytes]],
        target_date_key: str,
        offset_y: Optional[float] = None,
        *,
        use_default_time: bool = False,
    ) -> Union[MutationResult, DrawerState, None]:
        target = self.interactions.drop(raw, target_date_key, offset_y, use_default_time=use_default_time)
        if target is None:
            return None
        if target.kind is DragKind.TEMPLATE:
            start = target.start_minutes
            if start is None:
                start = self.context.settings.grid.default_drop_hour * 60
            return self.open_drawer_from_template(target.id, target.date_key, start)
        return await self.request_move(target.id, target.date_key, target.start_minutes)

    def begin_resize(self, event_id: str, pointer_y: float) -> Optional[ResizeSession]:
        source = self.find_event(event_id)
        if source is None:
            return None
        start, end = normalize_minutes(source, self.zone, self.context.settings.grid)
        session = self.interactions.begin_resize(
            event_id,
            date_key(source.start_at, self.zone),
            start,
            end,
            pointer_y,
            self.state.events,
        )
        self.state.drawer = self.interactions.drawer
        return session

    def pointer_move(self, pointer_y: float) -> Optional[int]:
        return self.interactions.pointer_move(pointer_y)

    async def release_resize(self) -> Optional[MutationResult]:
        release = self.interactions.release()
        if release is None:
            return None
        return await self.request_resize(release.event_id, release.end_minutes, snapshot=release.snapshot)

    def _open(self, drawer: DrawerState) -> DrawerState:
        self.state.drawer = self.interactions.open_drawer(drawer)
        return drawer

    def open_drawer_for_manual(
        self,
        target_date_key: str,
        start_minutes: int,
        *,
        location: Optional[str] = None,
    ) -> DrawerState:
        return self._open(
            drawer_for_manual(
                target_date_key,
                start_minutes,
                location=location or self.context.settings.facility.default_location,
            )
        )

    def open_drawer_from_template(
        self,
        template_id: str,
        target_date_key: str,
        start_minutes: int,
    ) -> Optional[DrawerState]:
        template = self.templates.get(template_id)
        if template is None:
            logger.debug("Dropped unknown template %s", template_id)
            return None
        return self._open(
            drawer_from_template(
                template,
                target_date_key,
                start_minutes,
                location=self.context.settings.facility.default_location,
            )
        )

    def open_drawer_for_edit(self, event_id: str) -> Optional[DrawerState]:
        event = self.find_event(event_id)
        if event is None:
            return None
        return self._open(drawer_for_edit(event, self.zone))

    def open_drawer_duplicate(self, event_id: str) -> Optional[DrawerState]:
        event = self.find_event(event_id)
        if event is None:
            return None
        return self._open(drawer_duplicate(event, self.zone))

    def close_drawer(self) -> None:
        self.interactions.close_drawer()
        self.state.drawer = None


__all__ = [
    "CalendarService",
    "CalendarState",
    "ConflictState",
    "MutationResult",
    "Notification",
]
