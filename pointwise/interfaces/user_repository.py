"""
User preference repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pointwise.models.user import UserPreferences, UserPreferencesUpdate


class IUserRepository(ABC):
    """Abstract interface for user preference persistence."""

    @abstractmethod
    async def get_preferences(self, user_id: str) -> UserPreferences:
        """Get preferences; a user without a row gets empty preferences."""
        pass

    @abstractmethod
    async def update_preferences(
        self, user_id: str, update: UserPreferencesUpdate
    ) -> UserPreferences:
        """Create or update preferences."""
        pass
