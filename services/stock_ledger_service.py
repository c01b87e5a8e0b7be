"""
Stock Ledger Service - on-hand and reserved quantities per stock entity.

Every mutation is one Postgres function call (see
migrations/001_stock_ledger.sql), so each call is applied atomically and
concurrent reservations can never oversell: the reserve step is a
conditional UPDATE that only succeeds while reserved + qty <= on_hand.

Business outcomes (unknown entity, not enough stock) raise their own
AppError subclasses. Anything else coming out of storage is wrapped as
StorageFaultError.
"""

from typing import Any, Optional, Union
from decimal import Decimal

import structlog

from config import get_supabase_client, settings
from models.stock import (
    StockKind,
    StockStatus,
    StockEntityResponse,
    StockReservationResponse,
    to_quantity,
)
from exceptions import (
    AppError,
    StockEntityNotFoundError,
    InsufficientStockError,
    StorageFaultError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

Quantity = Union[int, float, str, Decimal]


class StockLedgerService:
    """
    Stock ledger business logic.

    Core methods:
    - get_stock: Current on-hand / reserved for one entity
    - reserve / release: Hold or free available stock
    - release_order / fulfill_order: Settle every reservation of an order
    - credit / debit: Production output, receipts, shipments, consumption
    - list_stock: Listing with computed low-stock status
    """

    def __init__(self, db=None):
        self.db = db if db is not None else get_supabase_client()
        self.table = "stock_entities"
        self.reservations_table = "stock_reservations"

    # ===================
    # INTERNALS
    # ===================

    def _call(self, function: str, params: dict) -> Any:
        """Run a ledger RPC, wrapping storage failures."""
        try:
            return self.db.rpc(function, params).execute().data
        except AppError:
            raise
        except Exception as e:
            logger.error(
                "stock_rpc_failed",
                function=function,
                error=str(e),
                error_type=type(e).__name__
            )
            raise StorageFaultError(function, str(e), details={"params": _jsonable(params)}) from e

    def _entity(self, kind: StockKind, item_id: str, row: dict) -> StockEntityResponse:
        return StockEntityResponse(
            kind=kind,
            item_id=item_id,
            quantity_on_hand=row.get("quantity_on_hand"),
            quantity_reserved=row.get("quantity_reserved"),
            minimum_threshold=row.get("minimum_threshold"),
            updated_at=row.get("updated_at"),
        )

    @staticmethod
    def _positive(quantity: Quantity) -> Decimal:
        value = to_quantity(quantity)
        if value <= 0:
            raise ValidationError(
                "Quantity must be greater than zero",
                code="INVALID_QUANTITY",
                details={"quantity": str(quantity)}
            )
        return value

    # ===================
    # READ OPERATIONS
    # ===================

    def get_stock(
        self,
        item_id: str,
        kind: StockKind = StockKind.FINISHED_GOOD,
    ) -> StockEntityResponse:
        """
        Get on-hand and reserved quantities for one entity.

        Raises:
            StockEntityNotFoundError: If the entity doesn't exist
            StorageFaultError: If the read fails
        """
        logger.debug("getting_stock", kind=kind.value, item_id=item_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("kind", kind.value)
                .eq("item_id", str(item_id))
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_stock_failed", kind=kind.value, item_id=item_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        if not result.data:
            raise StockEntityNotFoundError(str(item_id), kind.value)

        return StockEntityResponse(**result.data[0])

    def find_stock(
        self,
        item_id: str,
        kind: StockKind = StockKind.FINISHED_GOOD,
    ) -> Optional[StockEntityResponse]:
        """Like get_stock, but returns None for unknown entities."""
        try:
            return self.get_stock(item_id, kind)
        except StockEntityNotFoundError:
            return None

    def list_stock(
        self,
        kind: Optional[StockKind] = None,
        status: Optional[StockStatus] = None,
    ) -> list[StockEntityResponse]:
        """
        List stock entities, optionally filtered by kind and computed status.

        Status is derived from available vs. threshold, so it is filtered here
        rather than in the query.
        """
        logger.info(
            "listing_stock",
            kind=kind.value if kind else None,
            status=status.value if status else None
        )

        try:
            query = self.db.table(self.table).select("*")
            if kind:
                query = query.eq("kind", kind.value)
            result = query.order("item_id").execute()
        except Exception as e:
            logger.error("list_stock_failed", error=str(e))
            raise StorageFaultError("select", str(e)) from e

        entities = [StockEntityResponse(**row) for row in result.data]
        if status:
            entities = [e for e in entities if e.status == status]
        return entities

    def get_order_reservations(self, order_id: str) -> list[StockReservationResponse]:
        """All reservation rows for an order, any status."""
        try:
            result = (
                self.db.table(self.reservations_table)
                .select("*")
                .eq("order_id", str(order_id))
                .order("item_id")
                .execute()
            )
        except Exception as e:
            logger.error("get_order_reservations_failed", order_id=order_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        return [StockReservationResponse(**row) for row in result.data]

    # ===================
    # RESERVATIONS
    # ===================

    def reserve(
        self,
        item_id: str,
        quantity: Quantity,
        kind: StockKind = StockKind.FINISHED_GOOD,
        order_id: Optional[str] = None,
    ) -> StockEntityResponse:
        """
        Reserve available stock.

        Succeeds only if quantity <= on_hand - reserved; the check and the
        increment are one conditional UPDATE. When order_id is given the
        reservation row is written in the same transaction.

        Raises:
            InsufficientStockError: Not enough available; state unchanged
            StockEntityNotFoundError: Unknown entity
        """
        qty = self._positive(quantity)
        item_id = str(item_id)

        data = self._call("stock_reserve", {
            "p_kind": kind.value,
            "p_item_id": item_id,
            "p_quantity": str(qty),
            "p_order_id": str(order_id) if order_id is not None else None,
        })

        if not data or not data.get("found"):
            raise StockEntityNotFoundError(item_id, kind.value)

        entity = self._entity(kind, item_id, data)

        if not data.get("reserved"):
            logger.info(
                "stock_reservation_refused",
                kind=kind.value,
                item_id=item_id,
                requested=str(qty),
                available=str(entity.quantity_available),
                order_id=order_id
            )
            raise InsufficientStockError(item_id, entity.quantity_available, qty)

        logger.info(
            "stock_reserved",
            kind=kind.value,
            item_id=item_id,
            quantity=str(qty),
            reserved=str(entity.quantity_reserved),
            order_id=order_id
        )
        return entity

    def release(
        self,
        item_id: str,
        quantity: Quantity,
        kind: StockKind = StockKind.FINISHED_GOOD,
    ) -> StockEntityResponse:
        """Decrease reserved by min(quantity, reserved)."""
        qty = self._positive(quantity)
        item_id = str(item_id)

        data = self._call("stock_release", {
            "p_kind": kind.value,
            "p_item_id": item_id,
            "p_quantity": str(qty),
        })
        if not data or not data.get("found"):
            raise StockEntityNotFoundError(item_id, kind.value)

        logger.info("stock_released", kind=kind.value, item_id=item_id, quantity=str(qty))
        return self._entity(kind, item_id, data)

    def release_order(self, order_id: str) -> list[StockReservationResponse]:
        """
        Release every active reservation held by an order.

        Idempotent: released rows are no longer active, so calling this a
        second time releases nothing.
        """
        rows = self._call("stock_release_order", {"p_order_id": str(order_id)}) or []
        released = [StockReservationResponse(**row) for row in rows]

        logger.info(
            "order_reservations_released",
            order_id=order_id,
            count=len(released)
        )
        return released

    def fulfill_order(self, order_id: str) -> list[StockReservationResponse]:
        """
        Convert an order's active reservations into shipments.

        Each reservation debits on-hand and reserved by its quantity.
        """
        rows = self._call("stock_fulfill_order", {"p_order_id": str(order_id)}) or []
        fulfilled = [StockReservationResponse(**row) for row in rows]

        logger.info(
            "order_reservations_fulfilled",
            order_id=order_id,
            count=len(fulfilled)
        )
        return fulfilled

    # ===================
    # CREDIT / DEBIT
    # ===================

    def credit(
        self,
        item_id: str,
        quantity: Quantity,
        kind: StockKind = StockKind.FINISHED_GOOD,
    ) -> StockEntityResponse:
        """
        Add to on-hand (production output or stock receipt).

        Creates the entity with zero reserved if it does not exist yet.
        """
        qty = self._positive(quantity)
        item_id = str(item_id)

        data = self._call("stock_credit", {
            "p_kind": kind.value,
            "p_item_id": item_id,
            "p_quantity": str(qty),
            "p_minimum_threshold": str(settings.default_minimum_threshold),
        })

        entity = self._entity(kind, item_id, data)
        logger.info(
            "stock_credited",
            kind=kind.value,
            item_id=item_id,
            quantity=str(qty),
            on_hand=str(entity.quantity_on_hand)
        )
        return entity

    def debit(
        self,
        item_id: str,
        quantity: Quantity,
        kind: StockKind = StockKind.FINISHED_GOOD,
    ) -> StockEntityResponse:
        """
        Remove from on-hand and reserved, each clamped at zero.

        Used for shipments and material consumption. Logs a warning when
        the entity crosses into low or out-of-stock.
        """
        qty = self._positive(quantity)
        item_id = str(item_id)

        data = self._call("stock_debit", {
            "p_kind": kind.value,
            "p_item_id": item_id,
            "p_quantity": str(qty),
        })
        if not data or not data.get("found"):
            raise StockEntityNotFoundError(item_id, kind.value)

        entity = self._entity(kind, item_id, data)
        logger.info(
            "stock_debited",
            kind=kind.value,
            item_id=item_id,
            quantity=str(qty),
            on_hand=str(entity.quantity_on_hand)
        )
        if entity.status != StockStatus.NORMAL:
            logger.warning(
                "stock_running_low",
                kind=kind.value,
                item_id=item_id,
                status=entity.status.value,
                available=str(entity.quantity_available),
                threshold=str(entity.minimum_threshold)
            )
        return entity


def _jsonable(params: dict) -> dict:
    return {k: (str(v) if v is not None else None) for k, v in params.items()}


# Singleton instance for convenience
_stock_ledger_service: Optional[StockLedgerService] = None


def get_stock_ledger_service() -> StockLedgerService:
    """Get or create StockLedgerService instance."""
    global _stock_ledger_service
    if _stock_ledger_service is None:
        _stock_ledger_service = StockLedgerService()
    return _stock_ledger_service
