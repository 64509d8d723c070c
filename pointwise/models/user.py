"""
User preference models.
"""

from typing import Optional

from pydantic import Field, field_validator

from pointwise.models.task import CamelModel
from pointwise.utils.datetime_utils import is_valid_time_zone


class User(CamelModel):
    """Authenticated user."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class UserPreferences(CamelModel):
    """Per-user settings used by the recurrence engine."""

    user_id: str
    preferred_time_zone: Optional[str] = Field(
        None, description="IANA timezone; the server default applies when unset"
    )


class UserPreferencesUpdate(CamelModel):
    preferred_time_zone: Optional[str] = None

    @field_validator("preferred_time_zone")
    @classmethod
    def validate_time_zone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_time_zone(value):
            raise ValueError(f"Unknown timezone: {value}")
        return value
