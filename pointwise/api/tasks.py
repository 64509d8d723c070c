"""
Tasks API endpoints.

Create, read, update and delete tasks, including recurring templates and
their generated instances.
"""

from datetime import datetime
from typing import NoReturn, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from pointwise.api.deps import CurrentUser, RequestContext, TaskSvc
from pointwise.core.exceptions import (
    BusinessLogicError,
    InfrastructureError,
    NotFoundError,
    PointwiseError,
    ValidationError,
)
from pointwise.models.enums import UpdateScope
from pointwise.models.patch import TaskPatch
from pointwise.models.task import (
    Task,
    TaskCreate,
    TaskDeleteResult,
    TaskSeries,
    TaskUpdateRequest,
    TaskUpdateResult,
)

router = APIRouter()


def _raise_http(exc: PointwiseError) -> NoReturn:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (ValidationError, BusinessLogicError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, InfrastructureError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        raise exc
    raise HTTPException(status_code=code, detail=exc.message) from exc


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    task: TaskCreate,
    user: CurrentUser,
    service: TaskSvc,
    ctx: RequestContext,
) -> Task:
    """Create a task; a non-none recurrence creates a template and its first instance."""
    try:
        return await service.create_task(user.id, task, ctx)
    except PointwiseError as exc:
        _raise_http(exc)


@router.get("", response_model=list[Task])
async def list_tasks(
    user: CurrentUser,
    service: TaskSvc,
    include_templates: bool = Query(True, description="Include recurring templates"),
    start_after: Optional[datetime] = Query(None, description="Start at or after"),
    start_before: Optional[datetime] = Query(None, description="Start before"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> list[Task]:
    """List tasks with optional filters."""
    try:
        return await service.list_tasks(
            user.id,
            include_templates=include_templates,
            start_after=start_after,
            start_before=start_before,
            limit=limit,
            offset=offset,
        )
    except PointwiseError as exc:
        _raise_http(exc)


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: UUID,
    user: CurrentUser,
    service: TaskSvc,
) -> Task:
    """Get a task by ID."""
    try:
        return await service.get_task(user.id, task_id)
    except PointwiseError as exc:
        _raise_http(exc)


@router.get("/{task_id}/series", response_model=TaskSeries)
async def get_task_series(
    task_id: UUID,
    user: CurrentUser,
    service: TaskSvc,
) -> TaskSeries:
    """Get the template and instances of the series a task belongs to."""
    try:
        return await service.get_series(user.id, task_id)
    except PointwiseError as exc:
        _raise_http(exc)


@router.patch("/{task_id}", response_model=TaskUpdateResult)
async def update_task(
    task_id: UUID,
    update: TaskUpdateRequest,
    user: CurrentUser,
    service: TaskSvc,
    ctx: RequestContext,
    scope: UpdateScope = Query(UpdateScope.SINGLE, description="single or series"),
) -> TaskUpdateResult:
    """
    Update a task.

    Fields present in the body (even as null) are applied; absent fields
    keep their stored value.
    """
    try:
        return await service.update_task(
            user.id, task_id, TaskPatch.from_request(update), scope, ctx
        )
    except PointwiseError as exc:
        _raise_http(exc)


@router.delete("/{task_id}", response_model=TaskDeleteResult)
async def delete_task(
    task_id: UUID,
    user: CurrentUser,
    service: TaskSvc,
    scope: UpdateScope = Query(UpdateScope.SINGLE, description="single or series"),
) -> TaskDeleteResult:
    """Delete a task, or its whole series."""
    try:
        return await service.delete_task(user.id, task_id, scope)
    except PointwiseError as exc:
        _raise_http(exc)
