"""
Availability API routes.

Answers "can N units of this product be promised, and by when".
"""

from fastapi import APIRouter
import structlog

from models.availability import (
    AvailabilityRequest,
    AvailabilityAnswer,
    AvailabilitySummary,
)
from services.availability_service import get_availability_service, get_availability_cache
from routes.errors import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/availability", tags=["Availability"])


@router.post("", response_model=AvailabilityAnswer)
async def check_availability(data: AvailabilityRequest):
    """
    Check availability for a product and quantity.

    Returns available_now, available_quantity and, when stock is short,
    the earliest time queued print jobs cover the request.

    Raises:
        404: Product not found
    """
    try:
        service = get_availability_service()
        return service.get_availability(data.product_id, data.quantity)

    except Exception as e:
        return handle_error(e)


@router.get("/cache/stats")
async def get_cache_stats():
    """Availability cache size and hit counters."""
    return get_availability_cache().stats()


@router.get("/{product_id}/summary", response_model=AvailabilitySummary)
async def get_availability_summary(product_id: str):
    """Stock on hand, units in production and total potential for a product."""
    try:
        service = get_availability_service()
        return service.get_summary(product_id)

    except Exception as e:
        return handle_error(e)
