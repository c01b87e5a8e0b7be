"""
Unit tests for OrderService.

Run: pytest tests/unit/test_order_service.py -v
"""

import pytest

from models.order import OrderStatus, is_valid_order_transition
from models.stock import ReservationStatus
from exceptions import (
    ConflictError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    StorageFaultError,
)
from tests.factories import ProductFactory, StockEntityFactory, OrderFactory


@pytest.fixture
def shop(wired, mock_supabase):
    mock_supabase.set_table_data("products", [ProductFactory.create(id=p) for p in ("A", "B")])
    mock_supabase.set_table_data("stock_entities", [
        StockEntityFactory.create(item_id="A", quantity_on_hand=20),
        StockEntityFactory.create(item_id="B", quantity_on_hand=10),
    ])
    return wired


class TestOrderTransitions:

    def test_lifecycle(self):
        assert is_valid_order_transition(OrderStatus.NEW, OrderStatus.RESERVED) is True
        assert is_valid_order_transition(OrderStatus.NEW, OrderStatus.REJECTED) is True
        assert is_valid_order_transition(OrderStatus.RESERVED, OrderStatus.FULFILLED) is True
        assert is_valid_order_transition(OrderStatus.RESERVED, OrderStatus.CANCELLED) is True

    def test_rejected_and_fulfilled_are_terminal(self):
        assert is_valid_order_transition(OrderStatus.REJECTED, OrderStatus.RESERVED) is False
        assert is_valid_order_transition(OrderStatus.FULFILLED, OrderStatus.CANCELLED) is False


class TestCreateOrder:

    def test_create_reserves_stock(self, shop):
        order, outcome = shop.orders.create(OrderFactory.create(items={"A": 5, "B": 10}))

        assert outcome.success is True
        assert order.status == OrderStatus.RESERVED
        assert shop.ledger.get_stock("A").quantity_reserved == 5
        assert shop.ledger.get_stock("B").quantity_reserved == 10

    def test_shortfall_rejects_order(self, shop):
        order, outcome = shop.orders.create(OrderFactory.create(items={"A": 5, "B": 15}))

        assert outcome.success is False
        assert order.status == OrderStatus.REJECTED
        assert order.rejection.product_id == "B"
        assert order.rejection.shortfall == 5
        assert shop.ledger.get_stock("A").quantity_reserved == 0

    def test_duplicate_order_number(self, shop):
        shop.orders.create(OrderFactory.create(items={"A": 1}, order_number="SHOP-1"))

        with pytest.raises(ConflictError) as exc_info:
            shop.orders.create(OrderFactory.create(items={"A": 1}, order_number="SHOP-1"))

        assert exc_info.value.code == "ORDER_NUMBER_EXISTS"
        assert shop.ledger.get_stock("A").quantity_reserved == 1

    def test_storage_fault_marks_order_rejected(self, shop, mock_supabase):
        mock_supabase.fail_on("stock_reserve", after=1)

        with pytest.raises(StorageFaultError):
            shop.orders.create(OrderFactory.create(items={"A": 2, "B": 2}, order_number="SHOP-9"))

        stored = mock_supabase.rows("orders")[0]
        assert stored["status"] == "rejected"
        assert shop.ledger.get_stock("A").quantity_reserved == 0

    def test_failed_reserved_write_releases_stock(self, shop, mock_supabase):
        mock_supabase.fail_on("orders.update")

        with pytest.raises(StorageFaultError) as exc_info:
            shop.orders.create(OrderFactory.create(items={"A": 5}, order_number="SHOP-7"))

        stored = mock_supabase.rows("orders")[0]
        assert exc_info.value.details["retryable"] is True
        assert stored["status"] == "rejected"
        assert shop.ledger.get_stock("A").quantity_reserved == 0
        reservations = shop.ledger.get_order_reservations(stored["id"])
        assert [r.status for r in reservations] == [ReservationStatus.RELEASED]

        retried, outcome = shop.orders.create(OrderFactory.create(items={"A": 20}, order_number="SHOP-8"))
        assert outcome.success is True
        assert retried.status == OrderStatus.RESERVED

    def test_get_with_reservations(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 2}))

        loaded = shop.orders.get_with_reservations(order.id)

        assert loaded.status == OrderStatus.RESERVED
        assert [(r.item_id, r.quantity) for r in loaded.reservations] == [("A", 2)]

    def test_get_unknown_order(self, shop):
        with pytest.raises(OrderNotFoundError):
            shop.orders.get_by_id("404")


class TestCancelAndFulfill:

    def test_cancel_releases_stock(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))

        cancelled = shop.orders.cancel(order.id)

        assert cancelled.status == OrderStatus.CANCELLED
        assert shop.ledger.get_stock("A").quantity_reserved == 0
        reservations = shop.ledger.get_order_reservations(order.id)
        assert [r.status for r in reservations] == [ReservationStatus.RELEASED]

    def test_cancel_twice_is_idempotent(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))
        shop.orders.cancel(order.id)

        again = shop.orders.cancel(order.id)

        assert again.status == OrderStatus.CANCELLED
        assert shop.ledger.get_stock("A").quantity_reserved == 0

    def test_fulfill_ships_stock(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))

        fulfilled = shop.orders.fulfill(order.id)

        entity = shop.ledger.get_stock("A")
        assert fulfilled.status == OrderStatus.FULFILLED
        assert entity.quantity_on_hand == 15
        assert entity.quantity_reserved == 0

    def test_rejected_order_cannot_be_fulfilled(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"B": 50}))

        with pytest.raises(InvalidStatusTransitionError):
            shop.orders.fulfill(order.id)

    def test_fulfilled_order_cannot_be_cancelled(self, shop):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 1}))
        shop.orders.fulfill(order.id)

        with pytest.raises(InvalidStatusTransitionError):
            shop.orders.cancel(order.id)

        assert shop.ledger.get_stock("A").quantity_on_hand == 19


class TestConcurrentSettlement:

    def test_fulfill_after_cancel_released_is_refused(self, shop, monkeypatch):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))
        release = shop.coordinator.release_for_order
        refused = []

        def release_then_fulfill(order_id):
            released = release(order_id)
            try:
                shop.orders.fulfill(order_id)
            except InvalidStatusTransitionError as e:
                refused.append(e)
            return released

        monkeypatch.setattr(shop.coordinator, "release_for_order", release_then_fulfill)

        cancelled = shop.orders.cancel(order.id)

        entity = shop.ledger.get_stock("A")
        assert cancelled.status == OrderStatus.CANCELLED
        assert len(refused) == 1
        assert shop.orders.get_by_id(order.id).status == OrderStatus.CANCELLED
        assert entity.quantity_on_hand == 20
        assert entity.quantity_reserved == 0

    def test_cancel_during_fulfill_is_refused(self, shop, monkeypatch):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))
        ship = shop.coordinator.fulfill_order
        refused = []

        def cancel_then_ship(order_id):
            try:
                shop.orders.cancel(order_id)
            except InvalidStatusTransitionError as e:
                refused.append(e)
            return ship(order_id)

        monkeypatch.setattr(shop.coordinator, "fulfill_order", cancel_then_ship)

        fulfilled = shop.orders.fulfill(order.id)

        entity = shop.ledger.get_stock("A")
        assert fulfilled.status == OrderStatus.FULFILLED
        assert len(refused) == 1
        assert entity.quantity_on_hand == 15
        assert entity.quantity_reserved == 0

    def test_interrupted_fulfill_ships_on_retry(self, shop, mock_supabase):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))
        mock_supabase.fail_on("stock_fulfill_order")

        with pytest.raises(StorageFaultError):
            shop.orders.fulfill(order.id)

        assert shop.ledger.get_stock("A").quantity_reserved == 5

        shop.orders.fulfill(order.id)

        entity = shop.ledger.get_stock("A")
        assert entity.quantity_on_hand == 15
        assert entity.quantity_reserved == 0

    def test_interrupted_cancel_releases_on_retry(self, shop, mock_supabase):
        order, _ = shop.orders.create(OrderFactory.create(items={"A": 5}))
        mock_supabase.fail_on("stock_release_order")

        with pytest.raises(StorageFaultError):
            shop.orders.cancel(order.id)

        again = shop.orders.cancel(order.id)

        assert again.status == OrderStatus.CANCELLED
        assert shop.ledger.get_stock("A").quantity_reserved == 0
