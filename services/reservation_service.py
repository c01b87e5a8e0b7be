"""
Reservation Coordinator - all-or-nothing stock reservation for orders.

An order's line items are reserved one at a time in ascending product id
order, each through the ledger's atomic conditional update. If any item
cannot be reserved, every reservation already taken for the order is
released before returning, so a partial reservation never outlives the
call. The release also runs when the call is interrupted or storage
fails part way.

Insufficient stock is an expected outcome and comes back as a rejected
ReservationOutcome, not an exception.
"""

from typing import Optional

import structlog

from models.order import (
    OrderLineItem,
    RejectionReason,
    ReservationOutcome,
    merge_line_items,
)
from models.production_job import ProductionJobResponse
from models.stock import (
    StockKind,
    StockReservationResponse,
    ReservationStatus,
    to_quantity,
)
from services.availability_cache import AvailabilityCache
from services.availability_service import (
    AvailabilityService,
    get_availability_cache,
    get_availability_service,
)
from services.production_job_service import ProductionJobService, get_production_job_service
from services.stock_ledger_service import StockLedgerService, get_stock_ledger_service
from exceptions import InsufficientStockError, ProductNotFoundError, StockEntityNotFoundError

logger = structlog.get_logger(__name__)


def rejection_for(product_id: str, requested, available) -> RejectionReason:
    """Shortfall details in the form shown to the customer."""
    requested = to_quantity(requested)
    available = to_quantity(available)
    return RejectionReason(
        product_id=product_id,
        requested=requested,
        available=available,
        shortfall=requested - available,
        message=(
            f"Cannot fulfill order: product {product_id} has "
            f"{available} available, {requested} requested"
        ),
    )


class ReservationCoordinator:
    """
    Transactional boundary between orders, print jobs and the stock ledger.

    Core methods:
    - reserve_for_order: Reserve every line item or none
    - release_for_order: Give back an order's reservations (idempotent)
    - fulfill_order: Ship an order's reservations
    - fulfill_production_job: Complete a job and credit its output
    - record_job_change: Cache invalidation for other job changes

    When an AvailabilityService is supplied, line items are pre-checked
    against it before anything is reserved. The pre-check is advisory; the
    ledger's reserve step makes the actual decision.
    """

    def __init__(
        self,
        ledger: Optional[StockLedgerService] = None,
        cache: Optional[AvailabilityCache] = None,
        jobs: Optional[ProductionJobService] = None,
        availability: Optional[AvailabilityService] = None,
    ):
        self.ledger = ledger or get_stock_ledger_service()
        self.cache = cache or get_availability_cache()
        self.jobs = jobs or get_production_job_service()
        self.availability = availability

    # ===================
    # ORDERS
    # ===================

    def _precheck(self, order_id: str, items: list[OrderLineItem]) -> Optional[RejectionReason]:
        """First item a fresh availability read says cannot be covered now."""
        for item in items:
            try:
                answer = self.availability.get_availability(item.product_id, item.quantity)
            except ProductNotFoundError:
                # Same outcome as the ledger gives for a missing stock entity
                return rejection_for(item.product_id, item.quantity, 0)
            if answer.available_now:
                continue
            # A cached "not available" may be stale; only reject on a fresh read
            self.cache.invalidate(item.product_id)
            answer = self.availability.get_availability(item.product_id, item.quantity)
            if not answer.available_now:
                logger.info(
                    "order_precheck_failed",
                    order_id=order_id,
                    product_id=item.product_id,
                    requested=item.quantity,
                    available=str(answer.available_quantity)
                )
                return rejection_for(item.product_id, item.quantity, answer.available_quantity)
        return None

    def reserve_for_order(
        self,
        order_id: str,
        line_items: list[OrderLineItem],
    ) -> ReservationOutcome:
        """
        Reserve stock for every line item of an order, or for none.

        Returns:
            ReservationOutcome with success=True and one reservation per
            product, or success=False with the first shortfall.

        Raises:
            StorageFaultError: Storage failed; reservations already made
                for this order have been released
        """
        order_id = str(order_id)
        items = merge_line_items(line_items)

        logger.info(
            "reserving_order",
            order_id=order_id,
            products=[i.product_id for i in items]
        )

        if self.availability is not None:
            rejection = self._precheck(order_id, items)
            if rejection is not None:
                return ReservationOutcome(order_id=order_id, success=False, rejection=rejection)

        reservations: list[StockReservationResponse] = []
        rejection: Optional[RejectionReason] = None
        touched: list[str] = []
        committed = False

        try:
            for item in items:
                touched.append(item.product_id)
                try:
                    self.ledger.reserve(
                        item.product_id,
                        item.quantity,
                        StockKind.FINISHED_GOOD,
                        order_id=order_id,
                    )
                except InsufficientStockError as e:
                    rejection = rejection_for(item.product_id, e.requested, e.available)
                    break
                except StockEntityNotFoundError:
                    rejection = rejection_for(item.product_id, item.quantity, 0)
                    break

                reservations.append(StockReservationResponse(
                    order_id=order_id,
                    kind=StockKind.FINISHED_GOOD,
                    item_id=item.product_id,
                    quantity=item.quantity,
                    status=ReservationStatus.ACTIVE,
                ))

            committed = rejection is None
        finally:
            if not committed:
                self._compensate(order_id)
            for product_id in touched:
                self.cache.invalidate(product_id)

        if rejection is not None:
            logger.info(
                "order_reservation_rejected",
                order_id=order_id,
                product_id=rejection.product_id,
                requested=str(rejection.requested),
                available=str(rejection.available)
            )
            return ReservationOutcome(order_id=order_id, success=False, rejection=rejection)

        logger.info("order_reserved", order_id=order_id, items=len(reservations))
        return ReservationOutcome(order_id=order_id, success=True, reservations=reservations)

    def _compensate(self, order_id: str) -> None:
        """Release whatever this order reserved. Must not be skipped."""
        try:
            released = self.ledger.release_order(order_id)
        except Exception as e:
            logger.error(
                "order_reservation_rollback_failed",
                order_id=order_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise
        logger.info("order_reservation_rolled_back", order_id=order_id, released=len(released))

    def release_for_order(self, order_id: str) -> list[StockReservationResponse]:
        """
        Release every active reservation of an order.

        Safe to call repeatedly; later calls release nothing.
        """
        released = self.ledger.release_order(str(order_id))
        for reservation in released:
            self.cache.invalidate(reservation.item_id)
        return released

    def fulfill_order(self, order_id: str) -> list[StockReservationResponse]:
        """Ship an order: debit stock for every active reservation."""
        fulfilled = self.ledger.fulfill_order(str(order_id))
        for reservation in fulfilled:
            self.cache.invalidate(reservation.item_id)
        return fulfilled

    # ===================
    # PRODUCTION
    # ===================

    def fulfill_production_job(self, job_id: str) -> ProductionJobResponse:
        """
        Complete a print job and credit its quantity to finished goods.

        Raises:
            ProductionJobNotFoundError: Unknown job
            InvalidStatusTransitionError: Job is not in progress
        """
        job = self.jobs.complete(job_id)

        self.cache.invalidate(job.product_id)
        logger.info(
            "production_output_credited",
            job_id=job.id,
            product_id=job.product_id,
            quantity=job.quantity
        )
        return job

    def record_job_change(self, product_id: str) -> None:
        """A job for the product was created, started or cancelled."""
        self.cache.invalidate(str(product_id))


# Singleton instance for convenience
_reservation_coordinator: Optional[ReservationCoordinator] = None


def get_reservation_coordinator() -> ReservationCoordinator:
    """Get or create ReservationCoordinator instance."""
    global _reservation_coordinator
    if _reservation_coordinator is None:
        _reservation_coordinator = ReservationCoordinator(availability=get_availability_service())
    return _reservation_coordinator
