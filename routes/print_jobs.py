"""
Print job API routes.

Moving a job to completed credits its output to finished-goods stock;
every other job change only invalidates cached availability.
"""

from fastapi import APIRouter, Query
from typing import Optional
import structlog

from models.production_job import (
    JobStatus,
    ProductionJobCreate,
    ProductionJobStatusUpdate,
    ProductionJobResponse,
    ProductionJobListResponse,
)
from services.production_job_service import get_production_job_service
from services.reservation_service import get_reservation_coordinator
from routes.errors import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/print-jobs", tags=["Print Jobs"])


@router.get("", response_model=ProductionJobListResponse)
async def list_print_jobs(
    product_id: Optional[str] = Query(None, description="Filter by product"),
    status: Optional[JobStatus] = Query(None, description="Filter by status"),
):
    """List print jobs in queue order."""
    try:
        jobs = get_production_job_service().list_jobs(product_id=product_id, status=status)
        return ProductionJobListResponse(data=jobs, total=len(jobs))

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=ProductionJobResponse, status_code=201)
async def create_print_job(data: ProductionJobCreate):
    """Queue a new pending print job."""
    try:
        job = get_production_job_service().create(data)
        get_reservation_coordinator().record_job_change(job.product_id)
        return job

    except Exception as e:
        return handle_error(e)


@router.patch("/{job_id}/status", response_model=ProductionJobResponse)
async def update_print_job_status(job_id: str, data: ProductionJobStatusUpdate):
    """
    Change print job status.

    Raises:
        404: Print job not found
        422: Invalid status transition
    """
    try:
        coordinator = get_reservation_coordinator()

        if data.status == JobStatus.COMPLETED:
            return coordinator.fulfill_production_job(job_id)

        job = get_production_job_service().update_status(job_id, data.status)
        coordinator.record_job_change(job.product_id)
        return job

    except Exception as e:
        return handle_error(e)
