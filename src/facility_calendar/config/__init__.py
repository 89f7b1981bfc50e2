"""Configuration models and helpers."""

from __future__ import annotations

from .settings import (
    DEFAULT_CACHE_PREFIX,
    ApiSettings,
    AppSettings,
    CacheSettings,
    FacilitySettings,
    GridSettings,
    get_settings,
)

__all__ = [
    "DEFAULT_CACHE_PREFIX",
    "ApiSettings",
    "AppSettings",
    "CacheSettings",
    "FacilitySettings",
    "GridSettings",
    "get_settings",
]
