"""
SQLite implementation of Task repository.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pointwise.core.exceptions import InfrastructureError, NotFoundError
from pointwise.core.logger import setup_logger
from pointwise.infrastructure.local.database import TaskORM, get_session_factory
from pointwise.interfaces.task_repository import (
    UPDATABLE_FIELDS,
    ITaskRepository,
    ITaskTransaction,
    SeriesRef,
)
from pointwise.models.enums import TaskStatus
from pointwise.models.recurrence import RecurrencePattern, dump_pattern, parse_pattern
from pointwise.models.task import Task, TaskCreate, TaskInstanceCreate
from pointwise.utils.datetime_utils import ensure_utc, now_utc, to_naive_utc

logger = setup_logger(__name__)

# Keeps rows * columns under SQLite's bound-parameter limit.
INSERT_CHUNK_SIZE = 40


def _orm_to_model(orm: TaskORM) -> Task:
    """
    Convert ORM object to Pydantic model.

    Raises:
        ValidationError: If a stored recurrence pattern is malformed
    """
    return Task(
        id=UUID(orm.id),
        user_id=orm.user_id,
        title=orm.title,
        description=orm.description,
        category=orm.category,
        xp_value=orm.xp_value or 0,
        status=TaskStatus(orm.status),
        start_date=orm.start_date,
        start_time=orm.start_time,
        due_date=orm.due_date,
        due_time=orm.due_time,
        start_at=ensure_utc(orm.start_at),
        due_at=ensure_utc(orm.due_at),
        recurrence_pattern=(
            parse_pattern(orm.recurrence_pattern) if orm.recurrence_pattern is not None else None
        ),
        next_occurrence=ensure_utc(orm.next_occurrence),
        edited_instance_keys=list(orm.edited_instance_keys or []),
        is_recurring_instance=bool(orm.is_recurring_instance),
        source_recurring_task_id=(
            UUID(orm.source_recurring_task_id) if orm.source_recurring_task_id else None
        ),
        recurrence_instance_key=orm.recurrence_instance_key,
        is_edited_instance=bool(orm.is_edited_instance),
        created_at=ensure_utc(orm.created_at),
        updated_at=ensure_utc(orm.updated_at),
    )


def _to_column_value(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return dump_pattern(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return value


def _to_column_values(data: dict[str, Any]) -> dict[str, Any]:
    unknown = set(data) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Not updatable task fields: {sorted(unknown)}")
    values = {field: _to_column_value(value) for field, value in data.items()}
    values["updated_at"] = to_naive_utc(now_utc())
    return values


def _owned(user_id: str, task_id: UUID):
    return and_(TaskORM.id == str(task_id), TaskORM.user_id == user_id)


def _instances_of(user_id: str, template_id: UUID):
    return and_(
        TaskORM.source_recurring_task_id == str(template_id),
        TaskORM.user_id == user_id,
        TaskORM.is_recurring_instance.is_(True),
    )


class SqliteTaskTransaction(ITaskTransaction):
    """Task operations bound to one open session transaction."""

    def __init__(self, session: AsyncSession, to_model: Callable[[TaskORM], Task] = _orm_to_model):
        self._session = session
        self._to_model = to_model

    async def _get_orm(self, user_id: str, task_id: UUID) -> Optional[TaskORM]:
        result = await self._session.execute(select(TaskORM).where(_owned(user_id, task_id)))
        return result.scalar_one_or_none()

    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        orm = await self._get_orm(user_id, task_id)
        return self._to_model(orm) if orm else None

    async def update(self, user_id: str, task_id: UUID, data: dict[str, Any]) -> Task:
        orm = await self._get_orm(user_id, task_id)
        if not orm:
            raise NotFoundError(f"Task {task_id} not found")

        for field, value in _to_column_values(data).items():
            setattr(orm, field, value)

        await self._session.flush()
        return self._to_model(orm)

    async def update_instances(
        self,
        user_id: str,
        template_id: UUID,
        data: dict[str, Any],
        only_non_edited: bool = True,
    ) -> int:
        condition = _instances_of(user_id, template_id)
        if only_non_edited:
            condition = and_(condition, TaskORM.is_edited_instance.is_(False))
        result = await self._session.execute(
            update(TaskORM).where(condition).values(**_to_column_values(data))
        )
        return result.rowcount or 0

    async def delete_instances(
        self,
        user_id: str,
        template_id: UUID,
        only_non_edited: bool = False,
    ) -> int:
        condition = _instances_of(user_id, template_id)
        if only_non_edited:
            condition = and_(condition, TaskORM.is_edited_instance.is_(False))
        result = await self._session.execute(delete(TaskORM).where(condition))
        return result.rowcount or 0

    async def delete(self, user_id: str, task_id: UUID) -> bool:
        orm = await self._get_orm(user_id, task_id)
        if not orm:
            return False
        await self._session.delete(orm)
        await self._session.flush()
        return True

    async def list_series(self, user_id: str, template_id: UUID) -> list[Task]:
        result = await self._session.execute(
            select(TaskORM)
            .where(
                and_(
                    TaskORM.user_id == user_id,
                    or_(
                        TaskORM.id == str(template_id),
                        TaskORM.source_recurring_task_id == str(template_id),
                    ),
                )
            )
            .order_by(TaskORM.start_date.asc(), TaskORM.start_at.asc(), TaskORM.created_at.asc())
        )
        return [self._to_model(orm) for orm in result.scalars().all()]


class SqliteTaskRepository(ITaskRepository):
    """SQLite implementation of task repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TaskORM) -> Task:
        """Convert ORM object to Pydantic model."""
        return _orm_to_model(orm)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ITaskTransaction]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield SqliteTaskTransaction(session, self._orm_to_model)
            except SQLAlchemyError as exc:
                logger.error(f"Task transaction rolled back: {exc}")
                raise InfrastructureError("Task storage operation failed", details=str(exc)) from exc

    async def create(
        self,
        user_id: str,
        task: TaskCreate,
        recurrence_pattern: Optional[RecurrencePattern] = None,
        start_at: Optional[datetime] = None,
        due_at: Optional[datetime] = None,
    ) -> Task:
        """Create a new task or recurring template."""
        async with self._session_factory() as session:
            orm = TaskORM(
                id=str(uuid4()),
                user_id=user_id,
                title=task.title,
                description=task.description,
                category=task.category,
                xp_value=task.xp_value,
                status=TaskStatus.PENDING.value,
                start_date=task.start_date,
                start_time=task.start_time,
                due_date=task.due_date,
                due_time=task.due_time,
                start_at=to_naive_utc(start_at),
                due_at=to_naive_utc(due_at),
                recurrence_pattern=dump_pattern(recurrence_pattern) if recurrence_pattern else None,
                edited_instance_keys=[],
                is_recurring_instance=False,
                is_edited_instance=False,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def create_instances(self, instances: list[TaskInstanceCreate]) -> int:
        """Insert instances, skipping keys that already exist in their series."""
        if not instances:
            return 0

        now = to_naive_utc(now_utc())
        rows = [
            {
                "id": str(uuid4()),
                "user_id": instance.user_id,
                "title": instance.title,
                "description": instance.description,
                "category": instance.category,
                "xp_value": instance.xp_value,
                "status": TaskStatus.PENDING.value,
                "start_date": instance.start_date,
                "start_time": instance.start_time,
                "due_date": instance.due_date,
                "due_time": instance.due_time,
                "start_at": to_naive_utc(instance.start_at),
                "due_at": to_naive_utc(instance.due_at),
                "edited_instance_keys": [],
                "is_recurring_instance": True,
                "source_recurring_task_id": str(instance.source_recurring_task_id),
                "recurrence_instance_key": instance.recurrence_instance_key,
                "is_edited_instance": False,
                "created_at": now,
                "updated_at": now,
            }
            for instance in instances
        ]

        inserted = 0
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for offset in range(0, len(rows), INSERT_CHUNK_SIZE):
                        stmt = (
                            sqlite_insert(TaskORM)
                            .values(rows[offset : offset + INSERT_CHUNK_SIZE])
                            .on_conflict_do_nothing(
                                index_elements=["source_recurring_task_id", "recurrence_instance_key"]
                            )
                        )
                        result = await session.execute(stmt)
                        inserted += result.rowcount or 0
        except SQLAlchemyError as exc:
            raise InfrastructureError("Failed to insert task instances", details=str(exc)) from exc
        return inserted

    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        async with self._session_factory() as session:
            result = await session.execute(select(TaskORM).where(_owned(user_id, task_id)))
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list(
        self,
        user_id: str,
        include_templates: bool = True,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Task]:
        """List tasks with optional filters."""
        async with self._session_factory() as session:
            conditions = [TaskORM.user_id == user_id]
            if not include_templates:
                conditions.append(TaskORM.recurrence_pattern.is_(None))
            if start_after is not None:
                conditions.append(TaskORM.start_at >= to_naive_utc(start_after))
            if start_before is not None:
                conditions.append(TaskORM.start_at < to_naive_utc(start_before))

            query = (
                select(TaskORM)
                .where(and_(*conditions))
                .order_by(TaskORM.start_at.asc(), TaskORM.created_at.asc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def find_latest_instance(
        self, user_id: str, template_id: UUID, only_non_edited: bool = False
    ) -> Optional[Task]:
        condition = _instances_of(user_id, template_id)
        if only_non_edited:
            condition = and_(condition, TaskORM.is_edited_instance.is_(False))
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(condition)
                .order_by(TaskORM.start_at.desc())
                .limit(1)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def find_instance_in_range(
        self,
        user_id: str,
        template_id: UUID,
        start: datetime,
        end: datetime,
    ) -> Optional[Task]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM)
                .where(
                    and_(
                        _instances_of(user_id, template_id),
                        TaskORM.start_at >= to_naive_utc(start),
                        TaskORM.start_at < to_naive_utc(end),
                    )
                )
                .limit(1)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_template_refs(self) -> list[SeriesRef]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TaskORM.id, TaskORM.user_id)
                .where(
                    and_(
                        TaskORM.recurrence_pattern.is_not(None),
                        TaskORM.is_recurring_instance.is_(False),
                    )
                )
                .order_by(TaskORM.created_at.asc())
            )
            return [SeriesRef(id=UUID(row.id), user_id=row.user_id) for row in result.all()]

    async def set_next_occurrence(
        self, user_id: str, template_id: UUID, next_occurrence: Optional[datetime]
    ) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(TaskORM)
                .where(_owned(user_id, template_id))
                .values(
                    next_occurrence=to_naive_utc(next_occurrence),
                    updated_at=to_naive_utc(now_utc()),
                )
            )
            await session.commit()


