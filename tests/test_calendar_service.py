from __future__ import annotations

import asyncio

import httpx
import orjson
import pytest

from conftest import ZONE, make_event
from facility_calendar.config import GridSettings
from facility_calendar.core.ranges import range_for_view
from facility_calendar.domain import (
    CalendarTemplate,
    DragKind,
    EditScope,
    MutationPhase,
    NotificationLevel,
    RecurrenceFrequency,
    ViewMode,
)
from facility_calendar.services.interactions import encode_drag_payload

pytestmark = pytest.mark.unit

DAY = "2024-06-05"
WEEK = range_for_view(ViewMode.WEEK, DAY, ZONE)


def record(identifier, start, end, **extra):
    return make_event(identifier, DAY, start, end, **extra).to_record()


def body(request: httpx.Request) -> dict:
    return orjson.loads(request.content)


def titles(notifications):
    return [(item.level, item.title, item.message) for item in notifications]


@pytest.fixture
async def loaded(service, server):
    server.activities = [
        record("a", "10:00", "11:00", title="Chair Yoga"),
        record("b", "13:00", "14:00", title="Bingo"),
        record("c", "15:00", "16:00", title="Choir", series_id="series-1"),
    ]
    await service.load_range(WEEK)
    return service


def start_of(service, event_id):
    return service.find_event(event_id).start_at


class TestLoading:
    async def test_load_range_sends_window_and_sets_events(self, loaded, server):
        (request,) = server.range_calls()
        assert request.url.params["start"] == "2024-06-03T04:00:00.000Z"
        assert request.url.params["end"] == "2024-06-10T03:59:59.999Z"
        assert request.url.params["view"] == "week"
        assert [event.id for event in loaded.state.events] == ["a", "b", "c"]
        assert loaded.state.loading is False and loaded.state.error is None

    async def test_repeat_load_is_served_from_cache(self, loaded, server):
        await loaded.load_range(WEEK)
        assert len(server.range_calls()) == 1

    async def test_failed_load_reports_error(self, service, server):
        server.respond("GET", "/calendar/range", httpx.Response(500, json={"error": "Database down"}))

        assert await service.load_range(WEEK) is None
        assert service.state.error == "Database down"
        assert titles(service.drain_notifications()) == [
            (NotificationLevel.ERROR, "Unable to load calendar", "Database down")
        ]

    async def test_newer_load_supersedes_older_one(self, service, server):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow(request):
            started.set()
            await release.wait()
            return httpx.Response(200, json={"activities": [record("old", "09:00", "10:00")]})

        server.respond("GET", "/calendar/range", slow)
        server.respond(
            "GET",
            "/calendar/range",
            httpx.Response(200, json={"activities": [make_event("new", "2024-06-12", "09:00", "10:00").to_record()]}),
        )
        next_week = range_for_view(ViewMode.WEEK, "2024-06-12", ZONE)

        first = asyncio.create_task(service.load_range(WEEK))
        await started.wait()
        second = await service.load_range(next_week)

        assert await first is None
        assert [event.id for event in second] == ["new"]
        assert service.state.visible == next_week
        assert [event.id for event in service.state.events] == ["new"]
        release.set()
        await asyncio.sleep(0)

    async def test_prefetch_warms_neighbouring_weeks(self, loaded, server):
        await loaded.prefetch_adjacent()
        assert len(server.range_calls()) == 3

        await loaded.load_range(range_for_view(ViewMode.WEEK, "2024-06-12", ZONE))
        assert len(server.range_calls()) == 3

    async def test_malformed_records_are_skipped(self, service, server):
        server.activities = [record("a", "10:00", "11:00"), {"id": "broken"}, "nope"]
        events = await service.load_range(WEEK)
        assert [event.id for event in events] == ["a"]


class TestMove:
    async def test_conflict_rolls_back_and_keeps_one_conflict(self, loaded, server):
        original = start_of(loaded, "a")
        server.respond(
            "POST",
            "/calendar/activities/a/move",
            httpx.Response(
                409,
                json={
                    "error": "Conflicts with Bingo",
                    "conflicts": [
                        {
                            "id": "b",
                            "title": "Bingo",
                            "startAt": "2024-06-05T17:00:00.000Z",
                            "endAt": "2024-06-05T18:00:00.000Z",
                            "location": "Activity Room",
                        }
                    ],
                },
            ),
        )

        result = await loaded.request_move("a", DAY, 13 * 60)

        assert result.phase is MutationPhase.ROLLED_BACK_CONFLICT
        assert result.history == [
            MutationPhase.IDLE,
            MutationPhase.APPLIED_LOCALLY,
            MutationPhase.AWAITING_SERVER,
            MutationPhase.ROLLED_BACK_CONFLICT,
        ]
        assert start_of(loaded, "a") == original
        conflict = loaded.state.conflict
        assert conflict.message == "Conflicts with Bingo"
        assert [(item.id, item.title) for item in conflict.conflicts] == [("b", "Bingo")]
        assert conflict.outside_business_hours is False
        assert loaded.drain_notifications() == []
        assert len(server.range_calls()) == 1

        (request,) = server.calls("POST", "/calendar/activities/a/move")
        assert body(request) == {
            "startAt": "2024-06-05T17:00:00.000Z",
            "endAt": "2024-06-05T18:00:00.000Z",
            "location": "Activity Room",
        }

    async def test_override_resubmits_with_both_flags(self, loaded, server):
        server.respond("POST", "/calendar/activities/a/move", httpx.Response(409, json={}))
        server.respond("POST", "/calendar/activities/a/move", httpx.Response(200, json={"ok": True}))
        await loaded.request_move("a", DAY, 13 * 60)
        assert loaded.state.conflict.message == "Scheduling conflict detected."

        result = await loaded.override_conflict()

        assert result.committed
        assert loaded.state.conflict is None
        retried = server.calls("POST", "/calendar/activities/a/move")[-1]
        assert body(retried)["allowConflictOverride"] is True
        assert body(retried)["allowOutsideBusinessHoursOverride"] is True
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Activity moved (override)", "")]
        assert len(server.range_calls()) == 2

    async def test_server_error_rolls_back_with_message(self, loaded, server):
        original = start_of(loaded, "a")
        server.respond("POST", "/calendar/activities/a/move", httpx.Response(500, json={"error": "Database down"}))

        result = await loaded.request_move("a", "2024-06-06", 9 * 60)

        assert result.phase is MutationPhase.ROLLED_BACK_ERROR
        assert start_of(loaded, "a") == original
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.ERROR, "Move failed", "Database down")]

    async def test_transport_error_rolls_back(self, loaded, server):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        server.respond("POST", "/calendar/activities/a/move", unreachable)
        result = await loaded.request_move("a", DAY, 12 * 60)

        assert result.phase is MutationPhase.ROLLED_BACK_ERROR
        assert titles(loaded.drain_notifications()) == [
            (NotificationLevel.ERROR, "Move failed", "Could not move activity.")
        ]

    async def test_success_invalidates_and_refetches(self, loaded, server):
        server.respond("POST", "/calendar/activities/a/move", httpx.Response(200, json={"ok": True}))

        result = await loaded.request_move("a", DAY, 12 * 60)

        assert result.committed
        assert len(server.range_calls()) == 2
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Activity moved", "")]

    async def test_month_cell_drop_keeps_the_start_time(self, loaded, server):
        server.respond("POST", "/calendar/activities/a/move", httpx.Response(200, json={}))

        await loaded.drop(encode_drag_payload(DragKind.EVENT, "a"), "2024-06-07")

        (request,) = server.calls("POST", "/calendar/activities/a/move")
        assert body(request)["startAt"] == "2024-06-07T14:00:00.000Z"
        assert body(request)["endAt"] == "2024-06-07T15:00:00.000Z"

    async def test_unknown_event_does_nothing(self, loaded, server):
        result = await loaded.request_move("missing", DAY, 600)
        assert result.phase is MutationPhase.IDLE
        assert server.calls("POST", "/calendar/activities/missing/move") == []


class TestResize:
    async def test_release_patches_the_new_end(self, loaded, server):
        server.respond("PATCH", "/calendar/activities/a", httpx.Response(200, json={}))

        loaded.begin_resize("a", 500.0)
        assert loaded.pointer_move(500 + 2 * 34) == 720
        preview = {layout.event.id: layout.end_minutes for layout in loaded.day_layout(DAY)}
        assert preview["a"] == 720

        result = await loaded.release_resize()

        assert result.committed
        (request,) = server.calls("PATCH", "/calendar/activities/a")
        assert body(request) == {
            "startAt": "2024-06-05T14:00:00.000Z",
            "endAt": "2024-06-05T16:00:00.000Z",
            "location": "Activity Room",
            "scope": "instance",
        }
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Activity resized", "")]

    async def test_rejected_resize_restores_gesture_snapshot(self, loaded, server):
        server.respond("PATCH", "/calendar/activities/a", httpx.Response(409, json={"error": "Room busy"}))
        original_end = loaded.find_event("a").end_at

        loaded.begin_resize("a", 0.0)
        loaded.pointer_move(34 * 4)
        result = await loaded.release_resize()

        assert result.phase is MutationPhase.ROLLED_BACK_CONFLICT
        assert loaded.find_event("a").end_at == original_end
        assert loaded.state.conflict.method == "PATCH"

    async def test_release_without_movement_sends_nothing(self, loaded, server):
        loaded.begin_resize("a", 0.0)
        assert await loaded.release_resize() is None
        assert server.calls("PATCH", "/calendar/activities/a") == []


class TestDrawerMutations:
    async def test_create_closes_drawer_and_refetches(self, loaded, server):
        def created(request):
            server.activities.append(record("d", "17:00", "18:00"))
            return httpx.Response(201, json={"activity": {"id": "d"}})

        server.respond("POST", "/calendar/activities", created)
        drawer = loaded.open_drawer_for_manual(DAY, 17 * 60)
        drawer.title = "Movie night"

        result = await loaded.request_create()

        assert result.committed
        assert loaded.state.drawer is None and loaded.interactions.drawer is None
        assert "d" in {event.id for event in loaded.state.events}
        assert len(server.range_calls()) == 2
        (request,) = server.calls("POST", "/calendar/activities")
        assert body(request)["title"] == "Movie night"
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Activity saved", "")]

    async def test_add_another_reopens_after_the_saved_activity(self, loaded, server):
        server.respond("POST", "/calendar/activities", httpx.Response(201, json={}))
        loaded.open_drawer_for_manual(DAY, 17 * 60)

        await loaded.request_create(add_another=True)

        assert loaded.state.drawer is not None
        assert (loaded.state.drawer.start_time, loaded.state.drawer.end_time) == ("18:00", "19:00")

    async def test_repeating_create_reports_a_series(self, loaded, server):
        server.respond("POST", "/calendar/activities", httpx.Response(201, json={}))
        drawer = loaded.open_drawer_for_manual(DAY, 17 * 60)
        drawer.repeat.frequency = RecurrenceFrequency.DAILY

        await loaded.request_create()

        (request,) = server.calls("POST", "/calendar/activities")
        assert body(request)["recurrence"] == {"freq": "DAILY", "interval": 1}
        assert titles(loaded.drain_notifications())[0][1] == "Series scheduled"

    async def test_invalid_range_never_reaches_the_server(self, loaded, server):
        drawer = loaded.open_drawer_for_manual(DAY, 17 * 60)
        drawer.end_time = "16:00"

        result = await loaded.request_create()

        assert result.phase is MutationPhase.IDLE
        assert server.calls("POST", "/calendar/activities") == []
        assert titles(loaded.drain_notifications()) == [
            (NotificationLevel.ERROR, "Invalid time range", "End time must be after start time.")
        ]
        assert loaded.state.drawer is drawer

    async def test_create_conflict_keeps_drawer_until_override(self, loaded, server):
        server.respond("POST", "/calendar/activities", httpx.Response(409, json={"outsideBusinessHours": True}))
        server.respond("POST", "/calendar/activities", httpx.Response(201, json={}))
        loaded.open_drawer_for_manual(DAY, 19 * 60)

        await loaded.request_create()
        assert loaded.state.drawer is not None
        assert loaded.state.conflict.outside_business_hours is True

        await loaded.override_conflict()
        assert loaded.state.drawer is None
        assert titles(loaded.drain_notifications())[-1][1] == "Activity saved (override)"

    async def test_series_edit_patches_the_series(self, loaded, server):
        server.respond("PATCH", "/calendar/series/series-1", httpx.Response(200, json={}))
        drawer = loaded.open_drawer_for_edit("c")
        drawer.scope = EditScope.SERIES
        drawer.title = "Choir practice"

        result = await loaded.request_edit()

        assert result.committed
        (request,) = server.calls("PATCH", "/calendar/series/series-1")
        assert body(request) == {"scope": "series", "title": "Choir practice", "location": "Activity Room"}
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Series updated", "")]

    async def test_instance_edit_patches_the_activity(self, loaded, server):
        server.respond("PATCH", "/calendar/activities/b", httpx.Response(200, json={}))
        drawer = loaded.open_drawer_for_edit("b")
        drawer.start_time = "13:30"
        drawer.end_time = "14:30"

        await loaded.request_edit()

        (request,) = server.calls("PATCH", "/calendar/activities/b")
        assert body(request)["startAt"] == "2024-06-05T17:30:00.000Z"
        assert body(request)["scope"] == "instance"

    async def test_skip_occurrence_posts_exdate(self, loaded, server):
        server.respond("POST", "/calendar/series/series-1/exdate", httpx.Response(200, json={}))
        loaded.open_drawer_for_edit("c")

        result = await loaded.skip_occurrence()

        assert result.committed
        (request,) = server.calls("POST", "/calendar/series/series-1/exdate")
        assert body(request) == {"occurrenceStartAt": "2024-06-05T19:00:00.000Z"}
        assert loaded.state.drawer is None

    async def test_skip_requires_a_series(self, loaded, server):
        loaded.open_drawer_for_edit("a")
        result = await loaded.skip_occurrence()
        assert result.phase is MutationPhase.IDLE


class TestDelete:
    async def test_delete_removes_without_refetch(self, loaded, server):
        server.respond("DELETE", "/calendar/activities/b", httpx.Response(204))
        loaded.open_drawer_for_edit("b")

        result = await loaded.request_delete("b")

        assert result.committed
        assert [event.id for event in loaded.state.events] == ["a", "c"]
        assert loaded.state.drawer is None
        assert len(server.range_calls()) == 1
        assert titles(loaded.drain_notifications()) == [(NotificationLevel.SUCCESS, "Activity deleted", "")]

    async def test_failed_delete_leaves_events(self, loaded, server):
        server.respond("DELETE", "/calendar/activities/b", httpx.Response(500, json={}))

        result = await loaded.request_delete("b")

        assert result.phase is MutationPhase.ROLLED_BACK_ERROR
        assert len(loaded.state.events) == 3
        assert titles(loaded.drain_notifications()) == [
            (NotificationLevel.ERROR, "Delete failed", "Could not delete activity.")
        ]


class TestDerivedViews:
    async def test_template_drop_opens_prefilled_drawer(self, loaded):
        loaded.set_templates([CalendarTemplate(id="tpl-1", title="Chair Yoga")])
        payload = loaded.begin_drag(DragKind.TEMPLATE, "tpl-1")

        drawer = await loaded.drop(payload, "2024-06-07")

        assert drawer is loaded.state.drawer
        assert (drawer.title, drawer.template_id, drawer.start_time) == ("Chair Yoga", "tpl-1", "10:00")

    async def test_conflicts_and_business_hours(self, service, server):
        server.activities = [
            record("a", "10:00", "11:00"),
            record("b", "10:30", "11:30"),
            record("late", "18:00", "19:00", location="Garden"),
        ]
        await service.load_range(WEEK)

        assert service.conflict_ids() == {"a", "b"}
        assert service.outside_business_hours(service.find_event("late"))
        assert not service.outside_business_hours(service.find_event("a"))


class TestFiltering:
    TEMPLATE_RECORDS = [
        {"id": "tpl-yoga", "title": "Chair Yoga", "category": "Fitness", "defaultChecklist": ["Mats"]},
        {"id": "tpl-choir", "title": "Choir", "category": "Music"},
        {"title": "No id"},
    ]

    @pytest.fixture
    async def filtered(self, service, server):
        server.activities = [
            record("a", "10:00", "11:00", title="Chair Yoga", template_id="tpl-yoga"),
            record("b", "10:30", "11:30", title="Bingo"),
            record("c", "13:00", "14:00", title="Choir", location="Chapel", template_id="tpl-choir"),
        ]
        await service.load_range(WEEK)
        return service

    async def test_load_templates_skips_records_without_an_id(self, filtered):
        templates = filtered.load_templates(self.TEMPLATE_RECORDS)

        assert [template.id for template in templates] == ["tpl-yoga", "tpl-choir"]
        assert filtered.templates["tpl-yoga"].default_checklist[0].text == "Mats"

    async def test_day_layout_shows_only_matching_events(self, filtered):
        filtered.load_templates(self.TEMPLATE_RECORDS)

        filtered.set_filter(categories=["Fitness", "Music"])
        assert [layout.event.id for layout in filtered.day_layout(DAY)] == ["a", "c"]

        filtered.set_filter(location="Chapel")
        assert [event.id for event in filtered.visible_events()] == ["c"]
        assert filtered.state.event_filter.categories == ["Fitness", "Music"]

        filtered.clear_filter()
        assert len(filtered.day_layout(DAY)) == 3

    async def test_hidden_events_still_mark_conflicts(self, filtered):
        filtered.set_filter(query="yoga")

        (layout,) = filtered.day_layout(DAY)

        assert layout.event.id == "a"
        assert layout.is_conflict
        assert layout.lane_count == 1

    async def test_locations_cover_all_loaded_events(self, filtered):
        filtered.set_filter(location="Chapel")
        assert filtered.locations() == ["Activity Room", "Chapel"]


class TestMidnightGrid:
    @pytest.fixture
    def grid(self):
        return GridSettings(end_hour=24)

    async def test_resize_to_the_end_of_the_grid_ends_at_midnight(self, loaded, server):
        server.respond("PATCH", "/calendar/activities/c", httpx.Response(200, json={}))

        loaded.begin_resize("c", 0.0)
        assert loaded.pointer_move(34 * 40) == 1440
        result = await loaded.release_resize()

        assert result.committed
        (request,) = server.calls("PATCH", "/calendar/activities/c")
        assert body(request)["endAt"] == "2024-06-06T04:00:00.000Z"
