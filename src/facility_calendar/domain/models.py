from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

ADAPTATION_FIELDS: Dict[str, str] = {
    "bed_bound": "bedBound",
    "dementia_friendly": "dementiaFriendly",
    "low_vision_hearing": "lowVisionHearing",
    "one_to_one_mini": "oneToOneMini",
}


def parse_instant(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def iso_instant(value: datetime) -> str:
    """Render an instant as an ISO-8601 UTC string with millisecond precision."""

    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


@dataclass(slots=True)
class ChecklistItem:
    text: str
    done: bool = False

    @classmethod
    def parse_many(cls, value: Any) -> List["ChecklistItem"]:
        if not isinstance(value, list):
            return []
        items: list[ChecklistItem] = []
        for entry in value:
            if isinstance(entry, str):
                text, done = entry.strip(), False
            elif isinstance(entry, Mapping) and "text" in entry:
                text = str(entry.get("text") or "").strip()
                done = bool(entry.get("done", False))
            else:
                continue
            if text:
                items.append(cls(text=text, done=done))
        return items

    @classmethod
    def from_texts(cls, texts: Iterable[str]) -> List["ChecklistItem"]:
        return [cls(text=text.strip()) for text in texts if text and text.strip()]

    def to_record(self) -> Dict[str, Any]:
        return {"text": self.text, "done": self.done}


@dataclass(slots=True)
class AdaptationToggle:
    enabled: bool = False
    override: str = ""


@dataclass(slots=True)
class Adaptations:
    bed_bound: AdaptationToggle = field(default_factory=AdaptationToggle)
    dementia_friendly: AdaptationToggle = field(default_factory=AdaptationToggle)
    low_vision_hearing: AdaptationToggle = field(default_factory=AdaptationToggle)
    one_to_one_mini: AdaptationToggle = field(default_factory=AdaptationToggle)
    notes: str = ""

    @classmethod
    def parse(cls, value: Any) -> "Adaptations":
        """Read the loosely typed adaptations blob; anything unexpected yields defaults."""

        instance = cls()
        if not isinstance(value, Mapping):
            return instance
        overrides = value.get("overrides")
        if not isinstance(overrides, Mapping):
            overrides = {}
        for attr, wire_key in ADAPTATION_FIELDS.items():
            override = overrides.get(wire_key)
            setattr(
                instance,
                attr,
                AdaptationToggle(
                    enabled=bool(value.get(wire_key)),
                    override=override if isinstance(override, str) else "",
                ),
            )
        notes = overrides.get("notes", overrides.get("generalNotes"))
        instance.notes = notes if isinstance(notes, str) else ""
        return instance

    @property
    def any_enabled(self) -> bool:
        return any(getattr(self, attr).enabled for attr in ADAPTATION_FIELDS)

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {}
        overrides: Dict[str, str] = {}
        for attr, wire_key in ADAPTATION_FIELDS.items():
            toggle: AdaptationToggle = getattr(self, attr)
            record[wire_key] = toggle.enabled
            if toggle.override.strip():
                overrides[wire_key] = toggle.override.strip()
        if self.notes.strip():
            overrides["notes"] = self.notes.strip()
        record["overrides"] = overrides
        return record


@dataclass(slots=True)
class CalendarTemplate:
    id: str
    title: str
    category: str = ""
    difficulty: str = ""
    default_checklist: List[ChecklistItem] = field(default_factory=list)
    adaptations: Adaptations = field(default_factory=Adaptations)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CalendarTemplate":
        return cls(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            category=str(record.get("category") or ""),
            difficulty=str(record.get("difficulty") or ""),
            default_checklist=ChecklistItem.parse_many(record.get("defaultChecklist")),
            adaptations=Adaptations.parse(record.get("adaptations")),
        )


@dataclass(slots=True)
class CalendarEvent:
    id: str
    title: str
    start_at: datetime
    end_at: datetime
    location: str = ""
    template_id: Optional[str] = None
    series_id: Optional[str] = None
    occurrence_key: Optional[str] = None
    is_override: bool = False
    conflict_override: bool = False
    checklist: List[ChecklistItem] = field(default_factory=list)
    adaptations: Adaptations = field(default_factory=Adaptations)

    def __post_init__(self) -> None:
        if self.end_at <= self.start_at:
            raise ValueError(f"Event {self.id!r} must end after it starts.")

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CalendarEvent":
        return cls(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            start_at=parse_instant(record["startAt"]),
            end_at=parse_instant(record["endAt"]),
            location=str(record.get("location") or ""),
            template_id=record.get("templateId") or None,
            series_id=record.get("seriesId") or None,
            occurrence_key=record.get("occurrenceKey") or None,
            is_override=bool(record.get("isOverride", False)),
            conflict_override=bool(record.get("conflictOverride", False)),
            checklist=ChecklistItem.parse_many(record.get("checklist")),
            adaptations=Adaptations.parse(record.get("adaptationsEnabled")),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "startAt": iso_instant(self.start_at),
            "endAt": iso_instant(self.end_at),
            "location": self.location,
            "templateId": self.template_id,
            "seriesId": self.series_id,
            "occurrenceKey": self.occurrence_key,
            "isOverride": self.is_override,
            "conflictOverride": self.conflict_override,
            "checklist": [item.to_record() for item in self.checklist],
            "adaptationsEnabled": self.adaptations.to_record(),
        }


def event_category(event: CalendarEvent, templates: Mapping[str, CalendarTemplate]) -> str:
    template = templates.get(event.template_id) if event.template_id else None
    if template and template.category:
        return template.category
    return "Uncategorized"
