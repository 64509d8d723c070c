"""
Task repository interface.

Defines the contract for task persistence operations, including the
transactional unit used by series edits and conversions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncContextManager, Optional
from uuid import UUID

from pointwise.models.recurrence import RecurrencePattern
from pointwise.models.task import Task, TaskCreate, TaskInstanceCreate

# Column-level values accepted by ITaskTransaction.update / update_instances.
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "category",
        "xp_value",
        "status",
        "start_date",
        "start_time",
        "due_date",
        "due_time",
        "start_at",
        "due_at",
        "recurrence_pattern",
        "next_occurrence",
        "edited_instance_keys",
        "is_recurring_instance",
        "source_recurring_task_id",
        "recurrence_instance_key",
        "is_edited_instance",
    }
)


@dataclass(frozen=True)
class SeriesRef:
    """Identifies one recurring template for the buffer job."""

    id: UUID
    user_id: str


class ITaskTransaction(ABC):
    """Operations executed atomically inside ITaskRepository.transaction()."""

    @abstractmethod
    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        pass

    @abstractmethod
    async def update(self, user_id: str, task_id: UUID, data: dict[str, Any]) -> Task:
        """
        Set column values on one task.

        Args:
            user_id: Owner user ID
            task_id: Task ID
            data: Field name to new value (keys from UPDATABLE_FIELDS)

        Returns:
            Updated task

        Raises:
            NotFoundError: If task not found
        """
        pass

    @abstractmethod
    async def update_instances(
        self,
        user_id: str,
        template_id: UUID,
        data: dict[str, Any],
        only_non_edited: bool = True,
    ) -> int:
        """
        Bulk-update instances of a template.

        Returns:
            Number of rows updated
        """
        pass

    @abstractmethod
    async def delete_instances(
        self,
        user_id: str,
        template_id: UUID,
        only_non_edited: bool = False,
    ) -> int:
        """
        Delete instances of a template.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    async def delete(self, user_id: str, task_id: UUID) -> bool:
        """Delete one task. Returns False if not found."""
        pass

    @abstractmethod
    async def list_series(self, user_id: str, template_id: UUID) -> list[Task]:
        """Template plus all of its instances, ordered by start date."""
        pass


class ITaskRepository(ABC):
    """Abstract interface for task persistence."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[ITaskTransaction]:
        """
        Open a transaction.

        Commits when the block exits normally and rolls back when it raises.

        Raises:
            InfrastructureError: If the storage layer fails (after rollback)
        """
        pass

    @abstractmethod
    async def create(
        self,
        user_id: str,
        task: TaskCreate,
        recurrence_pattern: Optional[RecurrencePattern] = None,
        start_at: Optional[datetime] = None,
        due_at: Optional[datetime] = None,
    ) -> Task:
        """
        Create a one-time task, or a template when recurrence_pattern is given.

        Args:
            user_id: Owner user ID
            task: Task creation data
            recurrence_pattern: Validated pattern for templates
            start_at: Resolved start instant
            due_at: Resolved due instant

        Returns:
            Created task with generated ID and timestamps
        """
        pass

    @abstractmethod
    async def create_instances(self, instances: list[TaskInstanceCreate]) -> int:
        """
        Insert generated instances in one write.

        Rows whose (series, instance key) already exists are skipped.

        Returns:
            Number of rows actually inserted
        """
        pass

    @abstractmethod
    async def get(self, user_id: str, task_id: UUID) -> Optional[Task]:
        """
        Get a task by ID.

        Returns:
            Task if found, None otherwise
        """
        pass

    @abstractmethod
    async def list(
        self,
        user_id: str,
        include_templates: bool = True,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Task]:
        """
        List tasks with optional filters.

        Args:
            user_id: Owner user ID
            include_templates: Include recurring templates
            start_after: Only tasks starting at or after this instant
            start_before: Only tasks starting before this instant
            limit: Maximum number of results
            offset: Pagination offset
        """
        pass

    @abstractmethod
    async def find_latest_instance(
        self, user_id: str, template_id: UUID, only_non_edited: bool = False
    ) -> Optional[Task]:
        """
        Most recent instance of a series by start instant.

        With only_non_edited, edited instances are not considered.
        """
        pass

    @abstractmethod
    async def find_instance_in_range(
        self,
        user_id: str,
        template_id: UUID,
        start: datetime,
        end: datetime,
    ) -> Optional[Task]:
        """Any instance of a series starting in [start, end)."""
        pass

    @abstractmethod
    async def list_template_refs(self) -> list[SeriesRef]:
        """All recurring templates across users."""
        pass

    @abstractmethod
    async def set_next_occurrence(
        self, user_id: str, template_id: UUID, next_occurrence: Optional[datetime]
    ) -> None:
        """Update the cached next-occurrence hint of a template."""
        pass
