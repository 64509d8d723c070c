"""
Authentication provider interface.
"""

from abc import ABC, abstractmethod

from pointwise.models.user import User


class IAuthProvider(ABC):
    """Abstract interface for bearer-token authentication."""

    @abstractmethod
    async def verify_token(self, token: str) -> User:
        """
        Verify a bearer token.

        Raises:
            AuthenticationError: If the token is not valid
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        pass
