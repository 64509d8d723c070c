"""
Result models for recurring buffer runs.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class BufferRunSummary(BaseModel):
    """Summary returned by the batch trigger endpoint."""

    success: bool = True
    timestamp: datetime
    processed: int = 0
    generated: int = 0
    errors: list[str] = Field(default_factory=list)
