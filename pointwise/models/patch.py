"""
Tri-state field updates.

A PATCH body distinguishes "field omitted" from "field explicitly set,
possibly to null". Each updatable field of a TaskPatch is either UNSET or
SetTo(value), where value may be None.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar, Union

from pointwise.models.enums import RecurrenceChoice

if TYPE_CHECKING:
    from pointwise.models.task import TaskUpdateRequest

T = TypeVar("T")


class _Unset:
    """Marker for a field that the request did not mention."""

    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@dataclass(frozen=True)
class SetTo(Generic[T]):
    """The request explicitly set the field to `value` (which may be None)."""

    value: T


Patch = Union[_Unset, SetTo[T]]


def resolve(patch: "Patch[T]", current: T) -> T:
    """The patched value if set, otherwise the current one (even when None)."""
    if isinstance(patch, SetTo):
        return patch.value
    return current


@dataclass(frozen=True)
class TaskPatch:
    """Field-by-field update derived from a TaskUpdateRequest."""

    title: Patch[str] = UNSET
    description: Patch[Optional[str]] = UNSET
    category: Patch[Optional[str]] = UNSET
    xp_value: Patch[int] = UNSET
    start_date: Patch[Optional[date]] = UNSET
    start_time: Patch[Optional[str]] = UNSET
    due_date: Patch[Optional[date]] = UNSET
    due_time: Patch[Optional[str]] = UNSET
    recurrence: Patch[Optional[RecurrenceChoice]] = UNSET
    recurrence_days: Patch[Optional[list[int]]] = UNSET
    recurrence_month_days: Patch[Optional[list[int]]] = UNSET
    times_of_day: Patch[Optional[list[str]]] = UNSET

    @classmethod
    def from_request(cls, request: "TaskUpdateRequest") -> "TaskPatch":
        """Only fields present in the request body become SetTo."""
        values: dict[str, Any] = {}
        for name in request.model_fields_set:
            values[name] = SetTo(getattr(request, name))
        return cls(**values)

    def is_set(self, name: str) -> bool:
        return isinstance(getattr(self, name), SetTo)

    def value(self, name: str, default: Any = None) -> Any:
        patch = getattr(self, name)
        return patch.value if isinstance(patch, SetTo) else default

    def set_fields(self) -> list[str]:
        return [f.name for f in fields(self) if self.is_set(f.name)]

    @property
    def touches_recurrence(self) -> bool:
        return any(
            self.is_set(name)
            for name in ("recurrence", "recurrence_days", "recurrence_month_days", "times_of_day")
        )
