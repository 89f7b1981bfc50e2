from __future__ import annotations

import pytest

from conftest import ZONE, utc
from facility_calendar.core.recurrence import (
    MAX_OCCURRENCES,
    RecurrenceDescriptor,
    RepeatSettings,
    build_recurrence,
    normalize_weekdays,
)
from facility_calendar.domain import RecurrenceFrequency, RepeatEndMode

pytestmark = pytest.mark.unit

ANCHOR = "2024-06-05"  # a Wednesday


def test_no_frequency_means_no_recurrence():
    assert build_recurrence(RepeatSettings(), ANCHOR, ZONE) is None


def test_weekly_defaults_to_the_anchor_weekday():
    descriptor = build_recurrence(RepeatSettings(frequency=RecurrenceFrequency.WEEKLY), ANCHOR, ZONE)

    assert descriptor is not None
    assert descriptor.to_payload() == {"freq": "WEEKLY", "interval": 1, "byDay": ["WE"]}


def test_weekly_days_are_normalized_into_calendar_order():
    settings = RepeatSettings(frequency=RecurrenceFrequency.WEEKLY, by_day=["fr", " MO", "Wednesday", "MO", ""])
    descriptor = build_recurrence(settings, ANCHOR, ZONE)

    assert descriptor.by_day == ("MO", "WE", "FR")
    assert normalize_weekdays(["xx"]) == ()


def test_daily_and_monthly_never_send_weekdays():
    for frequency in (RecurrenceFrequency.DAILY, RecurrenceFrequency.MONTHLY):
        settings = RepeatSettings(frequency=frequency, by_day=["MO"])
        assert "byDay" not in build_recurrence(settings, ANCHOR, ZONE).to_payload()


def test_end_after_count_sends_count_only():
    settings = RepeatSettings(
        frequency=RecurrenceFrequency.DAILY,
        end_mode=RepeatEndMode.AFTER_COUNT,
        count=10,
        until_date="2024-07-01",
    )
    payload = build_recurrence(settings, ANCHOR, ZONE).to_payload()

    assert payload["count"] == 10
    assert "until" not in payload


def test_end_on_date_sends_end_of_that_local_day():
    settings = RepeatSettings(
        frequency=RecurrenceFrequency.DAILY,
        end_mode=RepeatEndMode.ON_DATE,
        until_date="2024-07-01",
        count=10,
    )
    payload = build_recurrence(settings, ANCHOR, ZONE).to_payload()

    assert payload["until"] == "2024-07-02T03:59:59.999Z"
    assert "count" not in payload


def test_never_ending_series_has_neither_bound():
    settings = RepeatSettings(frequency=RecurrenceFrequency.MONTHLY, until_date="2024-07-01", count=3)
    payload = build_recurrence(settings, ANCHOR, ZONE).to_payload()

    assert payload == {"freq": "MONTHLY", "interval": 1}


@pytest.mark.parametrize(
    ("end_mode", "until_date", "count"),
    [
        (RepeatEndMode.ON_DATE, "", 4),
        (RepeatEndMode.ON_DATE, "07/01/2024", 4),
        (RepeatEndMode.AFTER_COUNT, "", 0),
    ],
)
def test_incomplete_end_settings_fall_back_to_open_ended(end_mode, until_date, count):
    settings = RepeatSettings(
        frequency=RecurrenceFrequency.DAILY, end_mode=end_mode, until_date=until_date, count=count
    )
    descriptor = build_recurrence(settings, ANCHOR, ZONE)

    assert descriptor.until is None and descriptor.count is None


def test_interval_and_count_are_clamped():
    settings = RepeatSettings(
        frequency=RecurrenceFrequency.DAILY,
        interval=0,
        end_mode=RepeatEndMode.AFTER_COUNT,
        count=5000,
    )
    descriptor = build_recurrence(settings, ANCHOR, ZONE)
    assert descriptor.interval == 1
    assert descriptor.count == MAX_OCCURRENCES

    settings.interval = 9999
    assert build_recurrence(settings, ANCHOR, ZONE).interval == 365


def test_descriptor_rejects_both_bounds():
    with pytest.raises(ValueError):
        RecurrenceDescriptor(freq=RecurrenceFrequency.DAILY, interval=1, until=utc(2024, 7, 1), count=3)
