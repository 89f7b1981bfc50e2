from __future__ import annotations

from enum import Enum


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    AGENDA = "agenda"


class RecurrenceFrequency(str, Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class RepeatEndMode(str, Enum):
    NEVER = "NEVER"
    ON_DATE = "ON_DATE"
    AFTER_COUNT = "AFTER_COUNT"


class EditScope(str, Enum):
    INSTANCE = "instance"
    SERIES = "series"


class DrawerMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"


class DragKind(str, Enum):
    TEMPLATE = "template"
    EVENT = "event"


class MutationPhase(str, Enum):
    IDLE = "idle"
    APPLIED_LOCALLY = "applied_locally"
    AWAITING_SERVER = "awaiting_server"
    COMMITTED = "committed"
    ROLLED_BACK_CONFLICT = "rolled_back_conflict"
    ROLLED_BACK_ERROR = "rolled_back_error"


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
