"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from pointwise.core.config import get_settings
from pointwise.utils.datetime_utils import now_utc, to_naive_utc


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def _utcnow() -> datetime:
    # DateTime columns hold naive UTC
    return to_naive_utc(now_utc())


# ===========================================
# ORM Models
# ===========================================


class TaskORM(Base):
    """
    Task ORM model.

    One-time tasks, recurring templates and generated instances share this
    table. A template is a row with a non-null recurrence_pattern; an
    instance points at its template through source_recurring_task_id.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint(
            "source_recurring_task_id",
            "recurrence_instance_key",
            name="uq_tasks_series_instance_key",
        ),
        Index("ix_tasks_series_start_at", "source_recurring_task_id", "start_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    xp_value = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    # Calendar fields (local to the owner) and the resolved instants
    start_date = Column(Date, nullable=True)
    start_time = Column(String(5), nullable=True)
    due_date = Column(Date, nullable=True)
    due_time = Column(String(5), nullable=True)
    start_at = Column(DateTime, nullable=True, index=True)
    due_at = Column(DateTime, nullable=True)

    # Template fields
    recurrence_pattern = Column(JSON(none_as_null=True), nullable=True)
    next_occurrence = Column(DateTime, nullable=True)
    edited_instance_keys = Column(JSON, nullable=False, default=list)

    # Instance fields
    is_recurring_instance = Column(Boolean, nullable=False, default=False)
    source_recurring_task_id = Column(String(36), nullable=True)
    recurrence_instance_key = Column(String(32), nullable=True)
    is_edited_instance = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class UserPreferencesORM(Base):
    """User preferences ORM model."""

    __tablename__ = "user_preferences"

    user_id = Column(String(255), primary_key=True)
    preferred_time_zone = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


# ===========================================
# Database Engine & Session
# ===========================================


def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=False)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Initialize database tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
