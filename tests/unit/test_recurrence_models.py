"""
Unit tests for recurrence pattern models and tri-state task patches.
"""

from datetime import date

import pytest
from pydantic import ValidationError as PydanticValidationError

from pointwise.core.exceptions import ValidationError
from pointwise.models.context import ExecutionContext
from pointwise.models.enums import RecurrenceChoice, RecurrenceKind
from pointwise.models.patch import UNSET, SetTo, TaskPatch, resolve
from pointwise.models.recurrence import (
    DailyPattern,
    MonthlyPattern,
    WeeklyPattern,
    build_pattern,
    dump_pattern,
    parse_pattern,
)
from pointwise.models.task import TaskCreate, TaskUpdateRequest


class TestParsePattern:
    def test_parse_weekly(self):
        pattern = parse_pattern(
            {
                "kind": "weekly",
                "times_of_day": ["18:00", "07:00", "07:00"],
                "start_date": "2025-03-01",
                "days_of_week": [3, 1, 3],
            }
        )
        assert isinstance(pattern, WeeklyPattern)
        assert pattern.days_of_week == [1, 3]
        assert pattern.times_of_day == ["07:00", "18:00"]

    def test_parse_accepts_camel_case(self):
        pattern = parse_pattern(
            {
                "kind": "monthly",
                "timesOfDay": ["09:00"],
                "startDate": "2025-03-01",
                "daysOfMonth": [31],
            }
        )
        assert isinstance(pattern, MonthlyPattern)
        assert pattern.days_of_month == [31]

    def test_dump_then_parse_is_stable(self):
        pattern = DailyPattern(times_of_day=["07:00"], start_date=date(2025, 3, 1))
        assert parse_pattern(dump_pattern(pattern)) == pattern

    @pytest.mark.parametrize(
        "raw",
        [
            {"kind": "weekly", "times_of_day": ["09:00"], "start_date": "2025-03-01", "days_of_week": []},
            {"kind": "monthly", "times_of_day": ["09:00"], "start_date": "2025-03-01", "days_of_month": [32]},
            {"kind": "daily", "times_of_day": [], "start_date": "2025-03-01"},
            {"kind": "daily", "times_of_day": ["25:00"], "start_date": "2025-03-01"},
            {"kind": "yearly", "times_of_day": ["09:00"], "start_date": "2025-03-01"},
            {"kind": "daily", "times_of_day": ["09:00"], "start_date": "2025-03-01", "end_date": "2025-02-01"},
            "not a pattern",
        ],
    )
    def test_malformed_patterns_raise(self, raw):
        with pytest.raises(ValidationError):
            parse_pattern(raw)


class TestBuildPattern:
    def test_day_lists_only_apply_to_their_kind(self):
        pattern = build_pattern(
            RecurrenceKind.DAILY,
            start_date=date(2025, 3, 1),
            times_of_day=["07:00"],
            days_of_week=[1],
            days_of_month=[5],
        )
        assert isinstance(pattern, DailyPattern)

    def test_weekly_requires_days(self):
        with pytest.raises(ValidationError):
            build_pattern(RecurrenceKind.WEEKLY, start_date=date(2025, 3, 1), times_of_day=["07:00"])

    def test_monthly_requires_days(self):
        with pytest.raises(ValidationError):
            build_pattern(
                RecurrenceKind.MONTHLY, start_date=date(2025, 3, 1), times_of_day=["07:00"]
            )


class TestTaskPatch:
    def test_absent_and_null_are_distinct(self):
        request = TaskUpdateRequest.model_validate({"title": "Stretch", "dueDate": None})
        patch = TaskPatch.from_request(request)

        assert patch.title == SetTo("Stretch")
        assert patch.due_date == SetTo(None)
        assert patch.start_date is UNSET
        assert patch.is_set("due_date")
        assert not patch.is_set("start_date")
        assert sorted(patch.set_fields()) == ["due_date", "title"]

    def test_context_alias_sets_description(self):
        request = TaskUpdateRequest.model_validate({"context": "Ten minutes"})
        patch = TaskPatch.from_request(request)
        assert patch.value("description") == "Ten minutes"

    def test_touches_recurrence(self):
        request = TaskUpdateRequest.model_validate({"timesOfDay": ["07:00"]})
        assert TaskPatch.from_request(request).touches_recurrence
        assert not TaskPatch.from_request(TaskUpdateRequest(title="x")).touches_recurrence

    def test_resolve(self):
        assert resolve(UNSET, date(2025, 1, 1)) == date(2025, 1, 1)
        assert resolve(SetTo(None), date(2025, 1, 1)) is None
        assert resolve(UNSET, None) is None

    def test_unset_is_falsy_singleton(self):
        assert not UNSET
        assert type(UNSET)() is UNSET


class TestRequestValidation:
    def test_recurrence_days_range(self):
        with pytest.raises(PydanticValidationError):
            TaskUpdateRequest.model_validate({"recurrenceDays": [7]})

    def test_recurrence_month_days_range(self):
        with pytest.raises(PydanticValidationError):
            TaskUpdateRequest.model_validate({"recurrenceMonthDays": [0]})

    def test_invalid_time_of_day(self):
        with pytest.raises(PydanticValidationError):
            TaskCreate.model_validate({"title": "x", "timesOfDay": ["7am"]})

    def test_create_defaults_to_one_time(self):
        task = TaskCreate.model_validate({"title": "x", "context": "notes"})
        assert task.recurrence == RecurrenceChoice.NONE
        assert task.description == "notes"


class TestExecutionContext:
    def test_unknown_time_zone_rejected(self):
        with pytest.raises(ValueError):
            ExecutionContext(time_zone="Nowhere/Land")
