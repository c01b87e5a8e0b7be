"""
Availability schemas.

An AvailabilityAnswer tells whether a requested quantity of a product can be
promised now, and if not, when queued print jobs will cover it.
"""

from enum import Enum
from decimal import Decimal
from datetime import datetime
from typing import Optional

from pydantic import Field

from models.base import BaseSchema
from models.production_job import JobStatus


class AvailabilityStatus(str, Enum):
    """Coarse availability label shown next to a product."""
    AVAILABLE = "available"
    IN_PRODUCTION = "in_production"
    OUT_OF_STOCK = "out_of_stock"


class AvailabilityRequest(BaseSchema):
    """Body for POST /api/availability."""

    product_id: str = Field(..., min_length=1, description="Product id")
    quantity: int = Field(..., gt=0, description="Units the customer wants")


class QueuedJobEstimate(BaseSchema):
    """A pending or in-progress job and when it should finish."""

    job_id: str
    quantity: int
    status: JobStatus
    printer_id: Optional[str] = None
    started_at: Optional[datetime] = None
    estimated_completion: datetime


class AvailabilityAnswer(BaseSchema):
    """
    Derived availability for one product and requested quantity.

    earliest_fulfillment_estimate is None when the quantity is available now
    or when queued production can never cover it (can_fulfill is False).
    """

    product_id: str
    requested_quantity: int = Field(..., gt=0)
    available_now: bool
    available_quantity: Decimal = Field(..., ge=0, description="On-hand minus reserved")
    quantity_on_hand: Decimal = Field(Decimal("0"), ge=0)
    quantity_reserved: Decimal = Field(Decimal("0"), ge=0)
    in_production: int = Field(0, ge=0, description="Units in pending or in-progress jobs")
    can_fulfill: bool
    earliest_fulfillment_estimate: Optional[datetime] = None
    availability_status: AvailabilityStatus
    production_jobs: list[QueuedJobEstimate] = Field(default_factory=list)
    computed_at: datetime


class AvailabilitySummary(BaseSchema):
    """Per-product stock and production overview."""

    product_id: str
    available_stock: Decimal
    in_production: int
    total_available: Decimal
    has_active_jobs: bool
