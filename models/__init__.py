"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
)
from models.stock import (
    StockKind,
    StockStatus,
    ReservationStatus,
    to_quantity,
    calculate_stock_status,
    StockEntityResponse,
    StockReservationResponse,
    StockAdjustment,
    StockListResponse,
)
from models.production_job import (
    JobStatus,
    OPEN_JOB_STATUSES,
    is_valid_job_transition,
    ProductionJobCreate,
    ProductionJobStatusUpdate,
    ProductionJobResponse,
    ProductionJobListResponse,
)
from models.order import (
    OrderStatus,
    is_valid_order_transition,
    OrderLineItem,
    merge_line_items,
    RejectionReason,
    ReservationOutcome,
    OrderCreate,
    OrderResponse,
    OrderWithReservationsResponse,
)
from models.availability import (
    AvailabilityStatus,
    AvailabilityRequest,
    QueuedJobEstimate,
    AvailabilityAnswer,
    AvailabilitySummary,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    # Stock
    "StockKind",
    "StockStatus",
    "ReservationStatus",
    "to_quantity",
    "calculate_stock_status",
    "StockEntityResponse",
    "StockReservationResponse",
    "StockAdjustment",
    "StockListResponse",
    # Print jobs
    "JobStatus",
    "OPEN_JOB_STATUSES",
    "is_valid_job_transition",
    "ProductionJobCreate",
    "ProductionJobStatusUpdate",
    "ProductionJobResponse",
    "ProductionJobListResponse",
    # Orders
    "OrderStatus",
    "is_valid_order_transition",
    "OrderLineItem",
    "merge_line_items",
    "RejectionReason",
    "ReservationOutcome",
    "OrderCreate",
    "OrderResponse",
    "OrderWithReservationsResponse",
    # Availability
    "AvailabilityStatus",
    "AvailabilityRequest",
    "QueuedJobEstimate",
    "AvailabilityAnswer",
    "AvailabilitySummary",
]
