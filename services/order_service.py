"""
Order service for business logic operations.

Creating an order reserves stock for all of its line items through the
ReservationCoordinator. The order ends up RESERVED, or REJECTED with the
shortfall when any item could not be reserved.
"""

from typing import Optional

import structlog

from config import get_supabase_client
from models.order import (
    OrderCreate,
    OrderResponse,
    OrderStatus,
    OrderWithReservationsResponse,
    ReservationOutcome,
    is_valid_order_transition,
)
from services.reservation_service import ReservationCoordinator, get_reservation_coordinator
from exceptions import (
    ConflictError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    StorageFaultError,
)

logger = structlog.get_logger(__name__)


class OrderService:
    """
    Order business logic.

    Handles creation (with reservation), cancellation, fulfillment and reads.
    """

    def __init__(self, coordinator: Optional[ReservationCoordinator] = None, db=None):
        self.coordinator = coordinator or get_reservation_coordinator()
        self.db = db if db is not None else get_supabase_client()
        self.table = "orders"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_by_id(self, order_id: str) -> OrderResponse:
        """
        Get a single order.

        Raises:
            OrderNotFoundError: If order doesn't exist
        """
        logger.debug("getting_order", order_id=order_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", order_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_order_failed", order_id=order_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        if not result.data:
            raise OrderNotFoundError(str(order_id))

        return OrderResponse(**result.data[0])

    def get_with_reservations(self, order_id: str) -> OrderWithReservationsResponse:
        """Order plus every reservation row it ever held."""
        order = self.get_by_id(order_id)
        reservations = self.coordinator.ledger.get_order_reservations(order.id)
        return OrderWithReservationsResponse(
            **order.model_dump(),
            reservations=reservations
        )

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: OrderCreate) -> tuple[OrderResponse, ReservationOutcome]:
        """
        Create an order and reserve its stock.

        Returns:
            Tuple of (order, reservation outcome). The order status is
            RESERVED on success and REJECTED otherwise.

        Raises:
            ConflictError: If the order number already exists
            StorageFaultError: If storage fails (no reservation is left behind)
        """
        logger.info(
            "creating_order",
            order_number=data.order_number,
            line_items=len(data.line_items)
        )

        try:
            result = self.db.table(self.table).insert({
                "order_number": data.order_number,
                "customer_name": data.customer_name,
                "customer_email": data.customer_email,
                "source": data.source,
                "line_items": [item.model_dump() for item in data.line_items],
                "status": OrderStatus.NEW.value,
                "notes": data.notes,
            }).execute()
        except Exception as e:
            if "duplicate" in str(e).lower() or "23505" in str(e):
                raise ConflictError(
                    "Order with this order number already exists",
                    code="ORDER_NUMBER_EXISTS",
                    details={"order_number": data.order_number}
                )
            logger.error("create_order_failed", error=str(e))
            raise StorageFaultError("insert", str(e)) from e

        order = OrderResponse(**result.data[0])

        try:
            outcome = self.coordinator.reserve_for_order(order.id, data.line_items)
        except Exception:
            self._set_status(order, OrderStatus.REJECTED)
            raise

        if outcome.success:
            try:
                order = self._set_status(order, OrderStatus.RESERVED)
            except Exception:
                # Reserved stock must not outlive an order that never became RESERVED
                logger.error("mark_order_reserved_failed", order_id=order.id)
                self.coordinator.release_for_order(order.id)
                self._set_status(order, OrderStatus.REJECTED)
                raise
        else:
            order = self._set_status(
                order,
                OrderStatus.REJECTED,
                {"rejection": outcome.rejection.model_dump(mode="json")}
            )

        logger.info(
            "order_created",
            order_id=order.id,
            status=order.status.value
        )
        return order, outcome

    def cancel(self, order_id: str) -> OrderResponse:
        """
        Cancel a reserved order and release its stock.

        The status change is claimed first, so a concurrent fulfill cannot
        ship the same reservations. Cancelling an already cancelled order
        releases anything still held and returns it unchanged, which also
        finishes a cancel interrupted after the claim.
        """
        order = self.get_by_id(order_id)
        if order.status == OrderStatus.CANCELLED:
            self.coordinator.release_for_order(order.id)
            return order

        self._check_transition(order, OrderStatus.CANCELLED)
        order = self._set_status(order, OrderStatus.CANCELLED)
        released = self.coordinator.release_for_order(order.id)

        logger.info("order_cancelled", order_id=order.id, released=len(released))
        return order

    def fulfill(self, order_id: str) -> OrderResponse:
        """
        Ship a reserved order, debiting its reserved stock.

        Claims the status change before shipping; fulfilling an already
        fulfilled order ships whatever an interrupted call left active.
        """
        order = self.get_by_id(order_id)
        if order.status == OrderStatus.FULFILLED:
            self.coordinator.fulfill_order(order.id)
            return order

        self._check_transition(order, OrderStatus.FULFILLED)
        order = self._set_status(order, OrderStatus.FULFILLED)
        shipped = self.coordinator.fulfill_order(order.id)

        logger.info("order_fulfilled", order_id=order.id, items=len(shipped))
        return order

    # ===================
    # HELPERS
    # ===================

    def _check_transition(self, order: OrderResponse, new_status: OrderStatus) -> None:
        if not is_valid_order_transition(order.status, new_status):
            raise InvalidStatusTransitionError(
                current_status=order.status.value,
                new_status=new_status.value
            )

    def _set_status(
        self,
        order: OrderResponse,
        new_status: OrderStatus,
        extra: Optional[dict] = None,
    ) -> OrderResponse:
        """Conditional status update: only applies if the status is unchanged."""
        try:
            result = (
                self.db.table(self.table)
                .update({"status": new_status.value, **(extra or {})})
                .eq("id", order.id)
                .eq("status", order.status.value)
                .execute()
            )
        except Exception as e:
            logger.error(
                "update_order_status_failed",
                order_id=order.id,
                new_status=new_status.value,
                error=str(e)
            )
            raise StorageFaultError("update", str(e)) from e

        if not result.data:
            current = self.get_by_id(order.id)
            raise InvalidStatusTransitionError(
                current_status=current.status.value,
                new_status=new_status.value
            )

        logger.info(
            "order_status_updated",
            order_id=order.id,
            from_status=order.status.value,
            to_status=new_status.value
        )
        return OrderResponse(**result.data[0])


# Singleton instance for convenience
_order_service: Optional[OrderService] = None


def get_order_service() -> OrderService:
    """Get or create OrderService instance."""
    global _order_service
    if _order_service is None:
        _order_service = OrderService()
    return _order_service
