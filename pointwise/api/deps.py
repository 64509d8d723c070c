"""
Dependency injection for API endpoints.

This module provides FastAPI dependencies that inject the correct
infrastructure implementations based on environment configuration.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from pointwise.core.config import Settings, get_settings
from pointwise.core.exceptions import AuthenticationError
from pointwise.interfaces.auth_provider import IAuthProvider
from pointwise.interfaces.task_repository import ITaskRepository
from pointwise.interfaces.user_repository import IUserRepository
from pointwise.models.context import ExecutionContext
from pointwise.models.user import User
from pointwise.services.recurring_buffer_service import RecurringBufferService
from pointwise.services.task_service import TaskService


# ===========================================
# Repository Dependencies
# ===========================================


@lru_cache()
def get_task_repository() -> ITaskRepository:
    """Get task repository instance."""
    from pointwise.infrastructure.local.task_repository import SqliteTaskRepository

    return SqliteTaskRepository()


@lru_cache()
def get_user_repository() -> IUserRepository:
    """Get user preference repository instance."""
    from pointwise.infrastructure.local.user_repository import SqliteUserRepository

    return SqliteUserRepository()


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    from pointwise.infrastructure.local.mock_auth import MockAuthProvider

    return MockAuthProvider(enabled=get_settings().AUTH_ENABLED)


# ===========================================
# Service Dependencies
# ===========================================


def get_recurring_buffer_service(
    task_repo: ITaskRepository = Depends(get_task_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
) -> RecurringBufferService:
    """Get recurring buffer service instance."""
    return RecurringBufferService(task_repo=task_repo, user_repo=user_repo)


def get_task_service(
    task_repo: ITaskRepository = Depends(get_task_repository),
    user_repo: IUserRepository = Depends(get_user_repository),
) -> TaskService:
    """Get task service instance."""
    return TaskService(task_repo=task_repo, user_repo=user_repo)


# ===========================================
# Auth Dependencies
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With authentication disabled, every request acts as dev_user.
    """
    if not auth_provider.is_enabled():
        # Mock user for development
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
        )


async def get_execution_context(
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[TaskService, Depends(get_task_service)],
) -> ExecutionContext:
    """Request clock and the user's timezone."""
    return await service.build_context(user.id)


def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Check the batch trigger's bearer secret.

    When CRON_SECRET is empty the endpoint is open (development only).
    """
    if not settings.CRON_SECRET:
        return
    if authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

TaskRepo = Annotated[ITaskRepository, Depends(get_task_repository)]
UserRepo = Annotated[IUserRepository, Depends(get_user_repository)]
TaskSvc = Annotated[TaskService, Depends(get_task_service)]
BufferSvc = Annotated[RecurringBufferService, Depends(get_recurring_buffer_service)]
CurrentUser = Annotated[User, Depends(get_current_user)]
RequestContext = Annotated[ExecutionContext, Depends(get_execution_context)]
CronAuthorized = Annotated[None, Depends(verify_cron_secret)]
