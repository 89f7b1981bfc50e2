from __future__ import annotations

import os
import tempfile

os.environ.setdefault("CALENDAR_LOG_DIR", tempfile.mkdtemp(prefix="facility-calendar-logs-"))

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from facility_calendar.config import ApiSettings, AppSettings, CacheSettings, FacilitySettings, GridSettings
from facility_calendar.core.timezone import to_instant
from facility_calendar.domain import CalendarEvent
from facility_calendar.services import CalendarService, ServiceContext

ZONE = "America/New_York"
BASE_URL = "http://calendar.test/api"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def make_event(
    identifier: str,
    day: str,
    start: str,
    end: str,
    *,
    location: str = "Activity Room",
    title: Optional[str] = None,
    zone: str = ZONE,
    **extra: Any,
) -> CalendarEvent:
    return CalendarEvent(
        id=identifier,
        title=title or f"Activity {identifier}",
        start_at=to_instant(day, start, zone),
        end_at=to_instant(day, end, zone),
        location=location,
        **extra,
    )


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FakeCalendarServer:
    """In-memory stand-in for the calendar REST API behind ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.activities: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], List[Responder]] = {}

    def respond(self, method: str, path: str, responder: Responder) -> None:
        """Queue a response; the last queued response for a route repeats."""

        self._routes.setdefault((method.upper(), f"/api{path}"), []).append(responder)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if queue:
            responder = queue.pop(0) if len(queue) > 1 else queue[0]
            return responder(request) if callable(responder) else responder
        if request.method == "GET" and request.url.path == "/api/calendar/range":
            return httpx.Response(200, json={"activities": list(self.activities)})
        return httpx.Response(404, json={"error": f"No route for {request.method} {request.url.path}"})

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and request.url.path == f"/api{path}"
        ]

    def range_calls(self) -> List[httpx.Request]:
        return self.calls("GET", "/calendar/range")


@pytest.fixture
def grid() -> GridSettings:
    return GridSettings()


@pytest.fixture
def settings(grid: GridSettings) -> AppSettings:
    return AppSettings(
        api=ApiSettings(base_url=BASE_URL, timeout_seconds=5.0),
        cache=CacheSettings(ttl=timedelta(seconds=30), prefix="calendar-range:"),
        grid=grid,
        facility=FacilitySettings(
            timezone=ZONE,
            default_location="Activity Room",
            business_hours_start="08:00",
            business_hours_end="17:00",
            business_days=(1, 2, 3, 4, 5),
        ),
    )


@pytest.fixture
def server() -> FakeCalendarServer:
    return FakeCalendarServer()


@pytest.fixture
async def http_client(server: FakeCalendarServer):
    client = httpx.AsyncClient(transport=httpx.MockTransport(server.handler), base_url=BASE_URL)
    yield client
    await client.aclose()


@pytest.fixture
def context(settings: AppSettings, http_client: httpx.AsyncClient) -> ServiceContext:
    return ServiceContext(settings=settings, http_client=http_client)


@pytest.fixture
def service(context: ServiceContext) -> CalendarService:
    return CalendarService(context)
