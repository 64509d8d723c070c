"""
Enum definitions for tasks and recurrence.
"""

from enum import Enum


class RecurrenceKind(str, Enum):
    """Supported recurrence kinds."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurrenceChoice(str, Enum):
    """Recurrence value accepted from clients ("none" = one-time task)."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    def to_kind(self) -> RecurrenceKind | None:
        if self is RecurrenceChoice.NONE:
            return None
        return RecurrenceKind(self.value)


class UpdateScope(str, Enum):
    """Which rows a task edit or delete applies to."""

    SINGLE = "single"
    SERIES = "series"


class TaskState(str, Enum):
    """Position of a task row in the recurrence state machine."""

    ONE_TIME = "ONE_TIME"
    TEMPLATE = "TEMPLATE"
    INSTANCE = "INSTANCE"
    EDITED_INSTANCE = "EDITED_INSTANCE"


class TaskStatus(str, Enum):
    """Task completion status."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
