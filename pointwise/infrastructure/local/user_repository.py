"""
SQLite implementation of user preference repository.
"""

from __future__ import annotations

from sqlalchemy import select

from pointwise.infrastructure.local.database import UserPreferencesORM, get_session_factory
from pointwise.interfaces.user_repository import IUserRepository
from pointwise.models.user import UserPreferences, UserPreferencesUpdate
from pointwise.utils.datetime_utils import now_utc, to_naive_utc


class SqliteUserRepository(IUserRepository):
    """SQLite implementation of user preference repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: UserPreferencesORM) -> UserPreferences:
        return UserPreferences(
            user_id=orm.user_id,
            preferred_time_zone=orm.preferred_time_zone,
        )

    async def get_preferences(self, user_id: str) -> UserPreferences:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserPreferencesORM).where(UserPreferencesORM.user_id == user_id)
            )
            orm = result.scalar_one_or_none()
            if not orm:
                return UserPreferences(user_id=user_id)
            return self._orm_to_model(orm)

    async def update_preferences(
        self, user_id: str, update: UserPreferencesUpdate
    ) -> UserPreferences:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserPreferencesORM).where(UserPreferencesORM.user_id == user_id)
            )
            orm = result.scalar_one_or_none()
            if not orm:
                orm = UserPreferencesORM(user_id=user_id)
                session.add(orm)

            for field, value in update.model_dump(exclude_unset=True).items():
                setattr(orm, field, value)
            orm.updated_at = to_naive_utc(now_utc())

            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
