"""Lenient pydantic views over server response bodies."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConflictSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    title: str = ""
    start_at: str = Field(default="", alias="startAt")
    end_at: str = Field(default="", alias="endAt")
    location: str = ""

    @field_validator("id", "title", "start_at", "end_at", "location", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        if value is None or isinstance(value, (dict, list)):
            return ""
        return str(value)


class ConflictResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    error: Optional[str] = None
    conflicts: List[ConflictSummary] = Field(default_factory=list)
    outside_business_hours: bool = Field(default=False, alias="outsideBusinessHours")

    @field_validator("conflicts", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("outside_business_hours", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return value is True

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @classmethod
    def parse(cls, payload: Dict[str, Any]) -> "ConflictResponse":
        try:
            return cls.model_validate(payload)
        except ValueError:
            return cls()


class RangeResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    activities: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("activities", mode="before")
    @classmethod
    def _records_only(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


__all__ = ["ConflictResponse", "ConflictSummary", "RangeResponse"]
