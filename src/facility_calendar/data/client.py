from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from ..config.settings import ApiSettings

logger = logging.getLogger(__name__)


class CalendarApiError(RuntimeError):
    """Raised when the calendar server cannot be reached or rejects a read."""

    def __init__(self, *, status_code: int, message: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        self.status_code = status_code
        self.message = message
        self.payload: Dict[str, Any] = dict(payload or {})
        super().__init__(f"Calendar API request failed ({status_code}): {message}")


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


def parse_error_message(payload: Mapping[str, Any], fallback: str) -> str:
    message = payload.get("error") if isinstance(payload, Mapping) else None
    if isinstance(message, str) and message.strip():
        return " ".join(message.split())
    return fallback


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    if response.status_code == 204 or not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        logger.debug("Non-JSON body from %s %s", response.request.method, response.request.url)
        return {}
    return payload if isinstance(payload, dict) else {}


class CalendarApiClient:
    """Thin async wrapper around the calendar REST endpoints."""

    def __init__(self, settings: ApiSettings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
        )

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    async def send(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
    ) -> ApiResponse:
        """Issue a request and return status plus decoded body without raising on status."""

        try:
            response = await self._http_client.request(
                method,
                endpoint,
                json=dict(payload) if payload is not None else None,
                params=dict(params) if params is not None else None,
            )
        except httpx.HTTPError as exc:
            raise CalendarApiError(status_code=0, message=f"Calendar request failed: {exc}") from exc
        logger.debug("%s %s -> %d", method, endpoint, response.status_code)
        return ApiResponse(status_code=response.status_code, payload=_json_body(response))

    async def get_json(self, endpoint: str, *, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        response = await self.send("GET", endpoint, params=params)
        if not response.ok:
            raise CalendarApiError(
                status_code=response.status_code,
                message=parse_error_message(response.payload, f"Request failed with status {response.status_code}"),
                payload=response.payload,
            )
        return response.payload

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()


__all__ = ["ApiResponse", "CalendarApiClient", "CalendarApiError", "parse_error_message"]
