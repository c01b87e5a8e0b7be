"""
Order API routes.

Order creation reserves stock for every line item: 201 when the whole
order was reserved, 400 with the shortfall when it was rejected.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.order import (
    OrderCreate,
    OrderResponse,
    OrderWithReservationsResponse,
)
from services.order_service import get_order_service
from exceptions import InsufficientStockError
from routes.errors import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.post("", response_model=OrderWithReservationsResponse, status_code=201)
async def create_order(data: OrderCreate):
    """
    Create an order and reserve its stock.

    Raises:
        400: Not enough stock for at least one line item (order rejected)
        409: Order number already exists
    """
    try:
        service = get_order_service()
        order, outcome = service.create(data)

        if not outcome.success:
            rejection = outcome.rejection
            error = InsufficientStockError(
                rejection.product_id,
                rejection.available,
                rejection.requested
            )
            error.details["order_id"] = order.id
            error.details["order_status"] = order.status.value
            return JSONResponse(status_code=400, content=error.to_dict())

        return OrderWithReservationsResponse(
            **order.model_dump(),
            reservations=outcome.reservations
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{order_id}", response_model=OrderWithReservationsResponse)
async def get_order(order_id: str):
    """
    Get an order with its reservations.

    Raises:
        404: Order not found
    """
    try:
        return get_order_service().get_with_reservations(order_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str):
    """
    Cancel a reserved order and release its stock.

    Raises:
        404: Order not found
        422: Order is not in a cancellable state
    """
    try:
        return get_order_service().cancel(order_id)

    except Exception as e:
        return handle_error(e)


@router.post("/{order_id}/fulfill", response_model=OrderResponse)
async def fulfill_order(order_id: str):
    """
    Ship a reserved order, removing its stock from the ledger.

    Raises:
        404: Order not found
        422: Order is not reserved
    """
    try:
        return get_order_service().fulfill(order_id)

    except Exception as e:
        return handle_error(e)
