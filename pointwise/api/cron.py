"""
Batch trigger endpoints.

Invoked by an external scheduler to fill the recurring task buffer.
"""

from fastapi import APIRouter

from pointwise.api.deps import BufferSvc, CronAuthorized
from pointwise.models.buffer import BufferRunSummary

router = APIRouter()


@router.get("/generate-recurring-tasks", response_model=BufferRunSummary)
@router.post("/generate-recurring-tasks", response_model=BufferRunSummary)
async def generate_recurring_tasks(
    _: CronAuthorized,
    service: BufferSvc,
) -> BufferRunSummary:
    """
    Run the recurring buffer job once.

    Per-series failures are reported in `errors`; they never fail the run.
    """
    return await service.run()
