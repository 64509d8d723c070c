"""
Task model definitions.

One task row is either a one-time task, a recurring template (carries the
recurrence pattern), a generated instance, or an edited instance.
Date and time are kept as separate fields so that a calendar date never
drifts with timezone conversion; start_at / due_at are the resolved instants.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pointwise.models.enums import RecurrenceChoice, TaskState, TaskStatus
from pointwise.models.recurrence import RecurrencePattern
from pointwise.utils.datetime_utils import parse_time_of_day


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase keys and serializes as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is not None:
        parse_time_of_day(value)
    return value


TimeOfDay = Annotated[str, AfterValidator(_check_time)]


class TaskBase(CamelModel):
    """Base task fields shared across create/read."""

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = Field(None, max_length=100)
    xp_value: int = Field(0, ge=0, le=100000, description="XP awarded on completion")
    start_date: Optional[date] = None
    start_time: Optional[TimeOfDay] = Field(None, description="Local HH:MM")
    due_date: Optional[date] = None
    due_time: Optional[TimeOfDay] = Field(None, description="Local HH:MM")


class TaskCreate(TaskBase):
    """Schema for creating a task (one-time, or a template when recurrence is set)."""

    description: Optional[str] = Field(
        None,
        max_length=5000,
        validation_alias=AliasChoices("context", "description"),
    )
    recurrence: RecurrenceChoice = RecurrenceChoice.NONE
    recurrence_days: list[int] = Field(default_factory=list)
    recurrence_month_days: list[int] = Field(default_factory=list)
    times_of_day: list[TimeOfDay] = Field(default_factory=list)


class TaskUpdateRequest(CamelModel):
    """
    PATCH body. Every field is optional; a field that is present (even as
    null) is applied, a field that is absent keeps the stored value.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(
        None,
        max_length=5000,
        validation_alias=AliasChoices("context", "description"),
    )
    category: Optional[str] = Field(None, max_length=100)
    xp_value: Optional[int] = Field(None, ge=0, le=100000)
    start_date: Optional[date] = None
    start_time: Optional[TimeOfDay] = None
    due_date: Optional[date] = None
    due_time: Optional[TimeOfDay] = None
    recurrence: Optional[RecurrenceChoice] = None
    recurrence_days: Optional[list[int]] = None
    recurrence_month_days: Optional[list[int]] = None
    times_of_day: Optional[list[TimeOfDay]] = None

    @field_validator("recurrence_days")
    @classmethod
    def validate_recurrence_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value and any(day < 0 or day > 6 for day in value):
            raise ValueError("recurrenceDays entries must be between 0 (Sunday) and 6 (Saturday)")
        return value

    @field_validator("recurrence_month_days")
    @classmethod
    def validate_recurrence_month_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if value and any(day < 1 or day > 31 for day in value):
            raise ValueError("recurrenceMonthDays entries must be between 1 and 31")
        return value


class TaskInstanceCreate(CamelModel):
    """Row produced by the buffer job for one occurrence of a series."""

    user_id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    xp_value: int = 0
    start_date: date
    start_time: Optional[str] = None
    due_date: date
    due_time: Optional[str] = None
    start_at: datetime
    due_at: datetime
    source_recurring_task_id: UUID
    recurrence_instance_key: str


class Task(TaskBase):
    """Complete task model with all fields."""

    id: UUID
    user_id: str
    status: TaskStatus = TaskStatus.PENDING
    start_at: Optional[datetime] = None
    due_at: Optional[datetime] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    next_occurrence: Optional[datetime] = None
    edited_instance_keys: list[str] = Field(default_factory=list)
    is_recurring_instance: bool = False
    source_recurring_task_id: Optional[UUID] = None
    recurrence_instance_key: Optional[str] = None
    is_edited_instance: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def state(self) -> TaskState:
        if self.is_recurring_instance and self.source_recurring_task_id:
            if self.is_edited_instance:
                return TaskState.EDITED_INSTANCE
            return TaskState.INSTANCE
        if self.recurrence_pattern is not None:
            return TaskState.TEMPLATE
        return TaskState.ONE_TIME

    @property
    def is_template(self) -> bool:
        return self.state == TaskState.TEMPLATE

    @property
    def is_instance(self) -> bool:
        return self.state in (TaskState.INSTANCE, TaskState.EDITED_INSTANCE)


class TaskSeries(CamelModel):
    """A template together with its materialized instances."""

    template: Task
    instances: list[Task] = Field(default_factory=list)


class TaskUpdateResult(CamelModel):
    """Outcome of a PATCH: the edited row and, for series edits, the whole series."""

    task: Task
    series: list[Task] = Field(default_factory=list)


class TaskDeleteResult(CamelModel):
    deleted_ids: list[UUID] = Field(default_factory=list)
