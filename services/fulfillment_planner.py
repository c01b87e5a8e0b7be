"""
Fulfillment planning - pure availability arithmetic.

No I/O here: callers pass the stock figures and the open print jobs, and
get back an AvailabilityAnswer. Open jobs of a product are treated as one
FIFO timeline: an in-progress job finishes at started_at + duration, and
each pending job starts when the job before it finishes.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from models.availability import (
    AvailabilityAnswer,
    AvailabilityStatus,
    QueuedJobEstimate,
)
from models.production_job import JobStatus, ProductionJobResponse
from models.stock import StockEntityResponse, to_quantity
from services.production_job_service import queue_order


def estimate_job_completions(
    jobs: Iterable[ProductionJobResponse],
    now: datetime,
) -> list[QueuedJobEstimate]:
    """
    Estimated completion time for each open job, in queue order.

    Finish times never go backwards along the queue, and an overdue
    in-progress job is assumed to finish now.
    """
    estimates = []
    cursor = now

    for job in sorted(jobs, key=queue_order):
        duration = timedelta(hours=float(job.estimated_duration_hours))
        if job.status == JobStatus.IN_PROGRESS and job.started_at is not None:
            finish = max(job.started_at + duration, cursor)
        else:
            finish = cursor + duration
        cursor = finish

        estimates.append(QueuedJobEstimate(
            job_id=job.id,
            quantity=job.quantity,
            status=job.status,
            printer_id=job.printer_id,
            started_at=job.started_at,
            estimated_completion=finish,
        ))

    return estimates


def answer_from_estimates(
    product_id: str,
    requested_quantity: int,
    quantity_on_hand: Decimal,
    quantity_reserved: Decimal,
    estimates: list[QueuedJobEstimate],
    computed_at: datetime,
) -> AvailabilityAnswer:
    """
    Build the answer for one requested quantity.

    If available stock is short, walk the queue accumulating output until
    the shortfall is covered; that job's finish is the earliest estimate.
    """
    available = max(quantity_on_hand - quantity_reserved, Decimal("0"))
    in_production = sum(e.quantity for e in estimates)
    available_now = available >= requested_quantity

    earliest: Optional[datetime] = None
    if not available_now:
        cumulative = available
        for estimate in estimates:
            cumulative += estimate.quantity
            if cumulative >= requested_quantity:
                earliest = estimate.estimated_completion
                break

    if available_now:
        status = AvailabilityStatus.AVAILABLE
    elif in_production > 0:
        status = AvailabilityStatus.IN_PRODUCTION
    else:
        status = AvailabilityStatus.OUT_OF_STOCK

    return AvailabilityAnswer(
        product_id=str(product_id),
        requested_quantity=requested_quantity,
        available_now=available_now,
        available_quantity=available,
        quantity_on_hand=quantity_on_hand,
        quantity_reserved=quantity_reserved,
        in_production=in_production,
        can_fulfill=available_now or earliest is not None,
        earliest_fulfillment_estimate=earliest,
        availability_status=status,
        production_jobs=estimates,
        computed_at=computed_at,
    )


def plan_fulfillment(
    product_id: str,
    stock: Optional[StockEntityResponse],
    jobs: Iterable[ProductionJobResponse],
    requested_quantity: int,
    now: datetime,
) -> AvailabilityAnswer:
    """
    Availability of requested_quantity units of a product.

    A product with no stock entity yet has zero on hand.
    """
    on_hand = stock.quantity_on_hand if stock else to_quantity(0)
    reserved = stock.quantity_reserved if stock else to_quantity(0)

    return answer_from_estimates(
        product_id,
        requested_quantity,
        on_hand,
        reserved,
        estimate_job_completions(jobs, now),
        now,
    )


def answer_for_quantity(answer: AvailabilityAnswer, quantity: int) -> AvailabilityAnswer:
    """Re-derive a cached answer for a different requested quantity."""
    return answer_from_estimates(
        answer.product_id,
        quantity,
        answer.quantity_on_hand,
        answer.quantity_reserved,
        answer.production_jobs,
        answer.computed_at,
    )
