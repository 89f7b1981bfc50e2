from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import httpx

from ..config import AppSettings, get_settings
from ..data import CalendarApiClient, RangeCache
from ..data.repositories import ActivityRepository


@dataclass(slots=True)
class ServiceContext:
    """Aggregate root for services to share settings, the API client, and the range cache."""

    settings: AppSettings = field(default_factory=get_settings)
    http_client: Optional[httpx.AsyncClient] = None
    client: CalendarApiClient = field(init=False)
    cache: RangeCache = field(init=False)
    activities: ActivityRepository = field(init=False)

    def __post_init__(self) -> None:
        self.client = CalendarApiClient(self.settings.api, http_client=self.http_client)
        self.cache = RangeCache(
            ttl=self.settings.cache.ttl,
            prefix=self.settings.cache.prefix,
        )
        self.activities = ActivityRepository(client=self.client, cache=self.cache)

    @property
    def zone(self) -> str:
        return self.settings.facility.timezone

    async def aclose(self) -> None:
        await self.client.aclose()
