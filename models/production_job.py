"""
Print job schemas for validation and serialization.

A print job is scheduled output: quantity units of a product on one printer.
Pending and in-progress jobs feed the availability calculation; completion
credits finished-goods stock.
"""

from enum import Enum
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from models.base import BaseSchema


# ===================
# ENUMS
# ===================

class JobStatus(str, Enum):
    """Print job lifecycle."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Jobs in these states will still produce output
OPEN_JOB_STATUSES = (JobStatus.PENDING, JobStatus.IN_PROGRESS)

VALID_JOB_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.IN_PROGRESS, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED, JobStatus.CANCELLED},
    JobStatus.COMPLETED: set(),
    JobStatus.CANCELLED: set(),
}


def is_valid_job_transition(current: JobStatus, new: JobStatus) -> bool:
    """
    Check if a print job status transition is valid.

    Completed and cancelled are terminal.
    """
    return new in VALID_JOB_TRANSITIONS[current]


# ===================
# REQUEST SCHEMAS
# ===================

class ProductionJobCreate(BaseSchema):
    """
    Schedule a new print job.

    Required: product_id, printer_id, quantity, estimated_duration_hours
    """

    product_id: str = Field(..., min_length=1, description="Product to print")
    printer_id: str = Field(..., min_length=1, description="Printer running the job")
    quantity: int = Field(..., gt=0, description="Units produced by the job")
    estimated_duration_hours: float = Field(..., gt=0, description="Estimated print time in hours")


class ProductionJobStatusUpdate(BaseSchema):
    """Change print job status."""

    status: JobStatus = Field(..., description="New status")


# ===================
# RESPONSE SCHEMAS
# ===================

class ProductionJobResponse(BaseSchema):
    """Print job as stored."""

    id: str = Field(..., description="Job id")
    product_id: str = Field(..., description="Product id")
    printer_id: Optional[str] = Field(None, description="Printer id")
    quantity: int = Field(..., gt=0, description="Units produced")
    status: JobStatus = Field(..., description="Job status")
    estimated_duration_hours: float = Field(0, ge=0, description="Estimated print time in hours")
    started_at: Optional[datetime] = Field(None, description="When printing started")
    completed_at: Optional[datetime] = Field(None, description="When printing finished")
    created_at: datetime = Field(..., description="When the job was queued")

    @field_validator("id", "product_id", "printer_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)


class ProductionJobListResponse(BaseSchema):
    """List of print jobs."""

    data: list[ProductionJobResponse]
    total: int
