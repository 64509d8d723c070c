"""
Recurrence pattern models.

A pattern is a tagged variant (daily / weekly / monthly) validated once,
when it enters the system from a request or from a stored JSON blob.
Business logic receives only validated patterns.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from pointwise.core.exceptions import ValidationError
from pointwise.models.enums import RecurrenceKind
from pointwise.utils.datetime_utils import parse_time_of_day


class _PatternBase(BaseModel):
    """Fields shared by every recurrence kind."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    times_of_day: list[str] = Field(
        ..., min_length=1, description="Local HH:MM times; one instance per time per day"
    )
    start_date: date = Field(..., description="Anchor date; no occurrence precedes it")
    end_date: Optional[date] = Field(None, description="Last day that may hold an occurrence")

    @field_validator("times_of_day")
    @classmethod
    def normalize_times(cls, value: list[str]) -> list[str]:
        for item in value:
            parse_time_of_day(item)
        return sorted(set(value))

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class DailyPattern(_PatternBase):
    kind: Literal["daily"] = "daily"


class WeeklyPattern(_PatternBase):
    kind: Literal["weekly"] = "weekly"
    days_of_week: list[int] = Field(
        ..., min_length=1, description="0=Sunday ... 6=Saturday"
    )

    @field_validator("days_of_week")
    @classmethod
    def normalize_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days_of_week entries must be between 0 and 6")
        return sorted(set(value))


class MonthlyPattern(_PatternBase):
    kind: Literal["monthly"] = "monthly"
    days_of_month: list[int] = Field(..., min_length=1, description="1 ... 31")

    @field_validator("days_of_month")
    @classmethod
    def normalize_days(cls, value: list[int]) -> list[int]:
        if any(day < 1 or day > 31 for day in value):
            raise ValueError("days_of_month entries must be between 1 and 31")
        return sorted(set(value))


RecurrencePattern = Annotated[
    Union[DailyPattern, WeeklyPattern, MonthlyPattern],
    Field(discriminator="kind"),
]

_pattern_adapter: TypeAdapter[RecurrencePattern] = TypeAdapter(RecurrencePattern)


def parse_pattern(raw: Any) -> RecurrencePattern:
    """
    Validate a stored or requested pattern blob.

    Raises:
        ValidationError: If the blob is not a well-formed pattern
    """
    try:
        return _pattern_adapter.validate_python(raw)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Malformed recurrence pattern: {exc.errors()[0].get('msg', exc)}",
            details=raw,
        ) from exc


def dump_pattern(pattern: RecurrencePattern) -> dict:
    """JSON-safe dict for storage."""
    return pattern.model_dump(mode="json")


def build_pattern(
    kind: RecurrenceKind,
    start_date: date,
    times_of_day: list[str],
    days_of_week: Optional[list[int]] = None,
    days_of_month: Optional[list[int]] = None,
    end_date: Optional[date] = None,
) -> RecurrencePattern:
    """Build a validated pattern; day lists only apply to their own kind."""
    raw: dict[str, Any] = {
        "kind": kind.value,
        "times_of_day": times_of_day,
        "start_date": start_date,
        "end_date": end_date,
    }
    if kind == RecurrenceKind.WEEKLY:
        raw["days_of_week"] = days_of_week or []
    elif kind == RecurrenceKind.MONTHLY:
        raw["days_of_month"] = days_of_month or []
    return parse_pattern(raw)
