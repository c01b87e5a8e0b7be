"""
Print job service - the production queue.

Reads the queue of open jobs per product (FIFO by creation time, then id)
for the availability calculation, and handles job scheduling and status
changes other than completion. Completion credits stock, so it goes
through ReservationCoordinator.fulfill_production_job.
"""

from typing import Optional
from datetime import datetime, timezone

import structlog

from config import get_supabase_client, settings
from models.production_job import (
    JobStatus,
    OPEN_JOB_STATUSES,
    ProductionJobCreate,
    ProductionJobResponse,
    is_valid_job_transition,
)
from exceptions import (
    ProductionJobNotFoundError,
    InvalidStatusTransitionError,
    StorageFaultError,
)

logger = structlog.get_logger(__name__)


def queue_order(job: ProductionJobResponse) -> tuple:
    """Sort key for the production queue: creation time, then id."""
    job_id = int(job.id) if job.id.isdigit() else job.id
    return (job.created_at, not isinstance(job_id, int), job_id)


def job_key(job_id) -> str:
    """Validated print job id. Ids are bigserial, so a non-numeric one cannot exist."""
    key = str(job_id).strip()
    if not key.isdigit():
        raise ProductionJobNotFoundError(key)
    return key


class ProductionJobService:
    """
    Print job business logic.

    Handles scheduling, queue reads and non-completing status changes.
    """

    def __init__(self, db=None):
        self.db = db if db is not None else get_supabase_client()
        self.table = "print_jobs"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_by_id(self, job_id: str) -> ProductionJobResponse:
        """
        Get a single print job.

        Raises:
            ProductionJobNotFoundError: If job doesn't exist
        """
        job_id = job_key(job_id)
        logger.debug("getting_print_job", job_id=job_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", job_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_print_job_failed", job_id=job_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        if not result.data:
            raise ProductionJobNotFoundError(str(job_id))

        return ProductionJobResponse(**result.data[0])

    def get_open_jobs(self, product_id: str) -> list[ProductionJobResponse]:
        """
        Pending and in-progress jobs for a product, oldest first.

        Jobs created at the same instant are ordered by id.
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("product_id", str(product_id))
                .in_("status", [s.value for s in OPEN_JOB_STATUSES])
                .order("created_at")
                .order("id")
                .execute()
            )
        except Exception as e:
            logger.error("get_open_jobs_failed", product_id=product_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        jobs = [ProductionJobResponse(**row) for row in result.data]
        # PostgREST orders ids as stored; re-sort so numeric ids compare numerically
        return sorted(jobs, key=queue_order)

    def list_jobs(
        self,
        product_id: Optional[str] = None,
        status: Optional[JobStatus] = None,
    ) -> list[ProductionJobResponse]:
        """List print jobs with optional filters."""
        try:
            query = self.db.table(self.table).select("*")
            if product_id:
                query = query.eq("product_id", str(product_id))
            if status:
                query = query.eq("status", status.value)
            result = query.order("created_at").order("id").execute()
        except Exception as e:
            logger.error("list_print_jobs_failed", error=str(e))
            raise StorageFaultError("select", str(e)) from e

        return sorted(
            (ProductionJobResponse(**row) for row in result.data),
            key=queue_order
        )

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: ProductionJobCreate) -> ProductionJobResponse:
        """Queue a new pending print job."""
        logger.info(
            "creating_print_job",
            product_id=data.product_id,
            printer_id=data.printer_id,
            quantity=data.quantity
        )

        try:
            result = self.db.table(self.table).insert({
                "product_id": data.product_id,
                "printer_id": data.printer_id,
                "quantity": data.quantity,
                "estimated_duration_hours": data.estimated_duration_hours,
                "status": JobStatus.PENDING.value,
            }).execute()
        except Exception as e:
            logger.error("create_print_job_failed", error=str(e))
            raise StorageFaultError("insert", str(e)) from e

        job = ProductionJobResponse(**result.data[0])
        logger.info("print_job_created", job_id=job.id, product_id=job.product_id)
        return job

    def update_status(self, job_id: str, new_status: JobStatus) -> ProductionJobResponse:
        """
        Move a job to in_progress or cancelled.

        Completion is not handled here; see
        ReservationCoordinator.fulfill_production_job.

        Raises:
            ProductionJobNotFoundError: If job doesn't exist
            InvalidStatusTransitionError: If transition is not allowed
        """
        job_id = job_key(job_id)
        existing = self.get_by_id(job_id)

        if existing.status == new_status:
            return existing

        if new_status == JobStatus.COMPLETED or not is_valid_job_transition(existing.status, new_status):
            raise InvalidStatusTransitionError(
                current_status=existing.status.value,
                new_status=new_status.value,
                resource="Print job"
            )

        update: dict = {"status": new_status.value}
        if new_status == JobStatus.IN_PROGRESS:
            update["started_at"] = datetime.now(timezone.utc).isoformat()

        try:
            # Guarded on the old status so a concurrent change is not overwritten
            result = (
                self.db.table(self.table)
                .update(update)
                .eq("id", job_id)
                .eq("status", existing.status.value)
                .execute()
            )
        except Exception as e:
            logger.error("update_print_job_status_failed", job_id=job_id, error=str(e))
            raise StorageFaultError("update", str(e)) from e

        if not result.data:
            current = self.get_by_id(job_id)
            raise InvalidStatusTransitionError(
                current_status=current.status.value,
                new_status=new_status.value,
                resource="Print job"
            )

        logger.info(
            "print_job_status_updated",
            job_id=job_id,
            from_status=existing.status.value,
            to_status=new_status.value
        )
        return ProductionJobResponse(**result.data[0])

    def complete(self, job_id: str) -> ProductionJobResponse:
        """
        Mark an in-progress job completed and credit its output to stock.

        Both happen in one database transaction (complete_print_job), so a
        job is never credited twice.

        Raises:
            ProductionJobNotFoundError: If job doesn't exist
            InvalidStatusTransitionError: If the job is not in progress
        """
        job_id = job_key(job_id)
        try:
            data = self.db.rpc("complete_print_job", {
                "p_job_id": int(job_id),
                "p_minimum_threshold": str(settings.default_minimum_threshold),
            }).execute().data
        except Exception as e:
            logger.error("complete_print_job_failed", job_id=job_id, error=str(e))
            raise StorageFaultError("complete_print_job", str(e), details={"job_id": str(job_id)}) from e

        if not data or not data.get("found"):
            raise ProductionJobNotFoundError(str(job_id))

        job = ProductionJobResponse(**data["job"])
        if not data.get("completed"):
            raise InvalidStatusTransitionError(
                current_status=job.status.value,
                new_status=JobStatus.COMPLETED.value,
                resource="Print job"
            )

        logger.info(
            "print_job_completed",
            job_id=job.id,
            product_id=job.product_id,
            quantity=job.quantity
        )
        return job


# Singleton instance for convenience
_production_job_service: Optional[ProductionJobService] = None


def get_production_job_service() -> ProductionJobService:
    """Get or create ProductionJobService instance."""
    global _production_job_service
    if _production_job_service is None:
        _production_job_service = ProductionJobService()
    return _production_job_service
