"""Pydantic models (schemas) for the application."""

from pointwise.models.buffer import BufferRunSummary
from pointwise.models.context import ExecutionContext
from pointwise.models.enums import (
    RecurrenceChoice,
    RecurrenceKind,
    TaskState,
    TaskStatus,
    UpdateScope,
)
from pointwise.models.patch import UNSET, SetTo, TaskPatch
from pointwise.models.recurrence import (
    DailyPattern,
    MonthlyPattern,
    RecurrencePattern,
    WeeklyPattern,
)
from pointwise.models.task import (
    Task,
    TaskCreate,
    TaskInstanceCreate,
    TaskSeries,
    TaskDeleteResult,
    TaskUpdateResult,
    TaskUpdateRequest,
)
from pointwise.models.user import User, UserPreferences, UserPreferencesUpdate

__all__ = [
    # Enums
    "RecurrenceChoice",
    "RecurrenceKind",
    "TaskState",
    "TaskStatus",
    "UpdateScope",
    # Recurrence
    "DailyPattern",
    "WeeklyPattern",
    "MonthlyPattern",
    "RecurrencePattern",
    "ExecutionContext",
    "BufferRunSummary",
    # Task
    "Task",
    "TaskCreate",
    "TaskInstanceCreate",
    "TaskSeries",
    "TaskDeleteResult",
    "TaskUpdateResult",
    "TaskUpdateRequest",
    "TaskPatch",
    "SetTo",
    "UNSET",
    # User
    "User",
    "UserPreferences",
    "UserPreferencesUpdate",
]
