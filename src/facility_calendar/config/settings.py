from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CACHE_PREFIX = "calendar-range:"


@dataclass(frozen=True)
class ApiSettings:
    base_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class CacheSettings:
    ttl: timedelta
    prefix: str


@dataclass(frozen=True)
class GridSettings:
    slot_minutes: int = 30
    slot_height: float = 34.0
    start_hour: int = 6
    end_hour: int = 21
    vertical_gap_px: float = 2.0
    column_gap_pct: float = 1.0
    min_event_height: float = 18.0
    min_width_pct: float = 18.0
    default_drop_hour: int = 10

    @property
    def start_minutes(self) -> int:
        return self.start_hour * 60

    @property
    def end_minutes(self) -> int:
        return self.end_hour * 60

    @property
    def slot_count(self) -> int:
        return (self.end_minutes - self.start_minutes) // self.slot_minutes + 1


@dataclass(frozen=True)
class FacilitySettings:
    timezone: str
    default_location: str
    business_hours_start: str
    business_hours_end: str
    business_days: Tuple[int, ...]


@dataclass(frozen=True)
class AppSettings:
    api: ApiSettings
    cache: CacheSettings
    grid: GridSettings
    facility: FacilitySettings


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _days_from_env(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    days: list[int] = []
    for token in raw.split(","):
        token = token.strip()
        if not token.isdigit():
            continue
        value = int(token)
        if 0 <= value <= 6 and value not in days:
            days.append(value)
    return tuple(sorted(days)) or default


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    api = ApiSettings(
        base_url=os.getenv("CALENDAR_API_BASE_URL", "http://127.0.0.1:3000/api"),
        timeout_seconds=_float_from_env("CALENDAR_API_TIMEOUT_SECONDS", 15.0),
    )

    cache = CacheSettings(
        ttl=timedelta(seconds=_int_from_env("CALENDAR_CACHE_TTL_SECONDS", 30)),
        prefix=os.getenv("CALENDAR_CACHE_PREFIX", DEFAULT_CACHE_PREFIX),
    )

    grid = GridSettings(
        slot_minutes=_int_from_env("CALENDAR_SLOT_MINUTES", 30),
        slot_height=_float_from_env("CALENDAR_SLOT_HEIGHT", 34.0),
        start_hour=min(23, max(0, _int_from_env("CALENDAR_GRID_START_HOUR", 6))),
        end_hour=min(24, max(1, _int_from_env("CALENDAR_GRID_END_HOUR", 21))),
    )

    facility = FacilitySettings(
        timezone=os.getenv("CALENDAR_TIMEZONE", "America/New_York"),
        default_location=os.getenv("CALENDAR_DEFAULT_LOCATION", "Activity Room"),
        business_hours_start=os.getenv("CALENDAR_BUSINESS_HOURS_START", "08:00"),
        business_hours_end=os.getenv("CALENDAR_BUSINESS_HOURS_END", "17:00"),
        business_days=_days_from_env("CALENDAR_BUSINESS_DAYS", (1, 2, 3, 4, 5)),
    )

    return AppSettings(api=api, cache=cache, grid=grid, facility=facility)
