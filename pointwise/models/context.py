"""
Execution context passed into every recurrence and conversion call.

Services never read the wall clock or a user's timezone from ambient state;
callers build the context once per request or per series.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from pointwise.utils.datetime_utils import ensure_utc, local_date, now_utc, resolve_time_zone


@dataclass(frozen=True)
class ExecutionContext:
    now: datetime = field(default_factory=now_utc)
    time_zone: str = "UTC"

    def __post_init__(self) -> None:
        resolve_time_zone(self.time_zone)
        object.__setattr__(self, "now", ensure_utc(self.now))

    @property
    def today(self) -> date:
        """Today's calendar date in the context timezone."""
        return local_date(self.now, self.time_zone)
