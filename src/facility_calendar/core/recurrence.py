from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..domain import RecurrenceFrequency, RepeatEndMode, iso_instant
from .timezone import WEEKDAY_TOKENS, parse_date_key, weekday_token, zoned_end_of_day

MAX_INTERVAL = 365
MAX_OCCURRENCES = 365


@dataclass(slots=True)
class RepeatSettings:
    frequency: RecurrenceFrequency = RecurrenceFrequency.NONE
    interval: int = 1
    by_day: List[str] = field(default_factory=list)
    end_mode: RepeatEndMode = RepeatEndMode.NEVER
    until_date: str = ""
    count: int = 4

    @property
    def enabled(self) -> bool:
        return self.frequency is not RecurrenceFrequency.NONE


@dataclass(frozen=True)
class RecurrenceDescriptor:
    freq: RecurrenceFrequency
    interval: int
    by_day: Optional[tuple[str, ...]] = None
    until: Optional[datetime] = None
    count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.until is not None and self.count is not None:
            raise ValueError("A recurrence may end on a date or after a count, not both.")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"freq": self.freq.value, "interval": self.interval}
        if self.by_day:
            payload["byDay"] = list(self.by_day)
        if self.until is not None:
            payload["until"] = iso_instant(self.until)
        if self.count is not None:
            payload["count"] = self.count
        return payload


def normalize_weekdays(tokens: Iterable[str]) -> tuple[str, ...]:
    wanted = {str(token).strip().upper()[:2] for token in tokens if str(token).strip()}
    return tuple(token for token in WEEKDAY_TOKENS if token in wanted)


def build_recurrence(
    settings: RepeatSettings,
    anchor_date_key: str,
    zone: Optional[str],
) -> Optional[RecurrenceDescriptor]:
    """Translate repeat settings into the descriptor the server expands."""

    if not settings.enabled:
        return None

    interval = max(1, min(MAX_INTERVAL, int(settings.interval or 1)))

    by_day: Optional[tuple[str, ...]] = None
    if settings.frequency is RecurrenceFrequency.WEEKLY:
        by_day = normalize_weekdays(settings.by_day) or (weekday_token(anchor_date_key, zone),)

    until: Optional[datetime] = None
    count: Optional[int] = None
    if settings.end_mode is RepeatEndMode.ON_DATE and parse_date_key(settings.until_date):
        until = zoned_end_of_day(settings.until_date, zone)
    elif settings.end_mode is RepeatEndMode.AFTER_COUNT and settings.count > 0:
        count = min(MAX_OCCURRENCES, int(settings.count))

    return RecurrenceDescriptor(
        freq=settings.frequency,
        interval=interval,
        by_day=by_day,
        until=until,
        count=count,
    )


__all__ = [
    "MAX_INTERVAL",
    "MAX_OCCURRENCES",
    "RecurrenceDescriptor",
    "RepeatSettings",
    "build_recurrence",
    "normalize_weekdays",
]
