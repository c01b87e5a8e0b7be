"""
Business logic services.

Each service handles one domain area. Cross-service workflows
(reserve, release, job completion) go through the reservation coordinator.
"""

from services.stock_ledger_service import StockLedgerService, get_stock_ledger_service
from services.production_job_service import ProductionJobService, get_production_job_service
from services.fulfillment_planner import (
    estimate_job_completions,
    plan_fulfillment,
    answer_for_quantity,
)
from services.availability_cache import AvailabilityCache
from services.availability_service import (
    AvailabilityService,
    get_availability_service,
    get_availability_cache,
)
from services.reservation_service import ReservationCoordinator, get_reservation_coordinator
from services.order_service import OrderService, get_order_service

__all__ = [
    "StockLedgerService",
    "get_stock_ledger_service",
    "ProductionJobService",
    "get_production_job_service",
    "estimate_job_completions",
    "plan_fulfillment",
    "answer_for_quantity",
    "AvailabilityCache",
    "AvailabilityService",
    "get_availability_service",
    "get_availability_cache",
    "ReservationCoordinator",
    "get_reservation_coordinator",
    "OrderService",
    "get_order_service",
]
