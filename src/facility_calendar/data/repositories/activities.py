from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping
from urllib.parse import quote

from ...core.ranges import CalendarWindow, api_view
from ...domain import CalendarEvent, iso_instant
from ..cache import RangeCache
from ..client import ApiResponse, CalendarApiClient
from ..schemas import RangeResponse

logger = logging.getLogger(__name__)

RANGE_ENDPOINT = "/calendar/range"
ACTIVITIES_ENDPOINT = "/calendar/activities"
SERIES_ENDPOINT = "/calendar/series"


def _segment(identifier: str) -> str:
    return quote(str(identifier), safe="")


@dataclass(frozen=True)
class MutationRequest:
    method: str
    endpoint: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def with_override(self) -> "MutationRequest":
        payload = dict(self.payload)
        payload["allowConflictOverride"] = True
        payload["allowOutsideBusinessHoursOverride"] = True
        return MutationRequest(method=self.method, endpoint=self.endpoint, payload=payload)


@dataclass(slots=True)
class ActivityRepository:
    client: CalendarApiClient
    cache: RangeCache

    def cache_key(self, window: CalendarWindow) -> str:
        return window.cache_key(self.cache.prefix)

    async def fetch_range(self, window: CalendarWindow, *, force: bool = False) -> List[CalendarEvent]:
        params = {
            "start": iso_instant(window.start),
            "end": iso_instant(window.end),
            "view": api_view(window.view),
        }

        async def load() -> Dict[str, Any]:
            return await self.client.get_json(RANGE_ENDPOINT, params=params)

        payload = await self.cache.get_or_load(self.cache_key(window), load, force=force)
        return self.parse_activities(payload)

    @staticmethod
    def parse_activities(payload: Mapping[str, Any]) -> List[CalendarEvent]:
        records = RangeResponse.model_validate(payload if isinstance(payload, Mapping) else {}).activities
        events: list[CalendarEvent] = []
        for record in records:
            try:
                events.append(CalendarEvent.from_record(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed activity %r: %s", record.get("id"), exc)
        return events

    def invalidate(self) -> int:
        return self.cache.invalidate_prefix()

    async def submit(self, request: MutationRequest) -> ApiResponse:
        logger.info("%s %s", request.method, request.endpoint)
        return await self.client.send(request.method, request.endpoint, request.payload)

    @staticmethod
    def move_request(event_id: str, payload: Mapping[str, Any]) -> MutationRequest:
        return MutationRequest("POST", f"{ACTIVITIES_ENDPOINT}/{_segment(event_id)}/move", dict(payload))

    @staticmethod
    def update_request(event_id: str, payload: Mapping[str, Any]) -> MutationRequest:
        return MutationRequest("PATCH", f"{ACTIVITIES_ENDPOINT}/{_segment(event_id)}", dict(payload))

    @staticmethod
    def create_request(payload: Mapping[str, Any]) -> MutationRequest:
        return MutationRequest("POST", ACTIVITIES_ENDPOINT, dict(payload))

    @staticmethod
    def delete_request(event_id: str) -> MutationRequest:
        return MutationRequest("DELETE", f"{ACTIVITIES_ENDPOINT}/{_segment(event_id)}")

    @staticmethod
    def skip_occurrence_request(series_id: str, occurrence_start_at: str) -> MutationRequest:
        return MutationRequest(
            "POST",
            f"{SERIES_ENDPOINT}/{_segment(series_id)}/exdate",
            {"occurrenceStartAt": occurrence_start_at},
        )

    @staticmethod
    def series_update_request(series_id: str, payload: Mapping[str, Any]) -> MutationRequest:
        return MutationRequest("PATCH", f"{SERIES_ENDPOINT}/{_segment(series_id)}", dict(payload))
