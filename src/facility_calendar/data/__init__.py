"""Data access layer."""

from __future__ import annotations

from .cache.range_cache import RangeCache
from .client import ApiResponse, CalendarApiClient, CalendarApiError, parse_error_message

__all__ = [
    "ApiResponse",
    "CalendarApiClient",
    "CalendarApiError",
    "RangeCache",
    "parse_error_message",
]
