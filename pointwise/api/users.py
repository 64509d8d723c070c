"""
User preferences API endpoints.
"""

from fastapi import APIRouter

from pointwise.api.deps import CurrentUser, UserRepo
from pointwise.models.user import UserPreferences, UserPreferencesUpdate

router = APIRouter()


@router.get("/me/preferences", response_model=UserPreferences)
async def get_my_preferences(
    user: CurrentUser,
    repo: UserRepo,
) -> UserPreferences:
    """Get the current user's preferences."""
    return await repo.get_preferences(user.id)


@router.put("/me/preferences", response_model=UserPreferences)
async def update_my_preferences(
    update: UserPreferencesUpdate,
    user: CurrentUser,
    repo: UserRepo,
) -> UserPreferences:
    """Update the current user's preferences (IANA timezone)."""
    return await repo.update_preferences(user.id, update)
