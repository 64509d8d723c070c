"""Abstract interfaces for infrastructure abstraction."""

from pointwise.interfaces.auth_provider import IAuthProvider
from pointwise.interfaces.task_repository import ITaskRepository, ITaskTransaction, SeriesRef
from pointwise.interfaces.user_repository import IUserRepository

__all__ = [
    "IAuthProvider",
    "ITaskRepository",
    "ITaskTransaction",
    "IUserRepository",
    "SeriesRef",
]
