"""
Shared test fixtures.

MockSupabaseClient keeps rows in memory and implements the stock ledger
RPCs from migrations/001_stock_ledger.sql, so services run against it
unchanged. Every execute() holds one lock, like a single Postgres
statement.
"""

import os
import sys
import threading
from pathlib import Path

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test.anon.key")

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Optional
from uuid import uuid4


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _same(a: Any, b: Any) -> bool:
    return str(a) == str(b)


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        if count is None and isinstance(self.data, list):
            count = len(self.data)
        self.count = count


class MockSupabaseQuery:
    """Chainable query builder evaluated against the client's rows."""

    def __init__(self, client: "MockSupabaseClient", table: str, op: str = "select", payload: Any = None):
        self._client = client
        self._table = table
        self._op = op
        self._payload = payload
        self._filters: list = []
        self._orders: list = []
        self._limit: Optional[int] = None

    def select(self, *columns, count: Optional[str] = None):
        return self

    def eq(self, column: str, value: Any):
        self._filters.append(lambda row: _same(row.get(column), value))
        return self

    def in_(self, column: str, values: list):
        wanted = {str(v) for v in values}
        self._filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def order(self, column: str, desc: bool = False):
        self._orders.append((column, desc))
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        client = self._client
        with client.lock:
            client.maybe_fail(f"{self._table}.{self._op}")

            if self._op == "insert":
                payload = self._payload if isinstance(self._payload, list) else [self._payload]
                return MockSupabaseResponse([client.insert_row(self._table, row) for row in payload])

            rows = [r for r in client.rows(self._table) if all(f(r) for f in self._filters)]

            if self._op == "update":
                for row in rows:
                    row.update(self._payload)
                    row["updated_at"] = _now_iso()
                return MockSupabaseResponse([dict(r) for r in rows])

            for column, desc in reversed(self._orders):
                rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
            if self._limit is not None:
                rows = rows[:self._limit]
            return MockSupabaseResponse([dict(r) for r in rows])


class MockSupabaseTable:
    """Entry point for table operations."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *columns, count: Optional[str] = None):
        return MockSupabaseQuery(self._client, self._name)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)


class MockRpcCall:
    def __init__(self, client: "MockSupabaseClient", function: str, params: dict):
        self._client = client
        self._function = function
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        with self._client.lock:
            self._client.maybe_fail(self._function)
            handler = getattr(self._client, f"_rpc_{self._function}")
            return MockSupabaseResponse(handler(**self._params))


class MockSupabaseClient:
    """
    In-memory Supabase client.

    Usage:
        mock_supabase.set_table_data("products", [{"id": "P1"}])
        mock_supabase.fail_on("stock_reserve", after=1)
    """

    SEQUENCE_TABLES = ("orders", "print_jobs")
    UNIQUE_COLUMNS = {"orders": "order_number"}
    DEFAULTS = {
        "orders": {"status": "new", "source": "direct", "rejection": None, "notes": None,
                   "customer_email": None, "line_items": []},
        "print_jobs": {"status": "pending", "printer_id": None, "started_at": None,
                       "completed_at": None, "estimated_duration_hours": 0},
        "stock_reservations": {"status": "active"},
        "stock_entities": {"quantity_on_hand": Decimal("0"), "quantity_reserved": Decimal("0"),
                           "minimum_threshold": Decimal("0")},
    }

    def __init__(self):
        self.lock = threading.RLock()
        self._tables: dict[str, list[dict]] = {}
        self._sequence = 0
        self._failures: dict[str, list] = {}
        self.rpc_calls: list[str] = []

    # ----- setup helpers -----

    def set_table_data(self, table_name: str, data: list, count: Optional[int] = None):
        """Replace a table's rows."""
        self._tables[table_name] = []
        for row in data:
            self.insert_row(table_name, row)

    def rows(self, table_name: str) -> list[dict]:
        return self._tables.setdefault(table_name, [])

    def fail_on(self, name: str, after: int = 0, error: Optional[Exception] = None):
        """
        Make the (after + 1)th call of an RPC or table op raise.

        Table ops are named "<table>.<op>", e.g. "orders.update".
        """
        self._failures[name] = [after, error or RuntimeError(f"connection reset during {name}")]

    def maybe_fail(self, name: str):
        failure = self._failures.get(name)
        if failure is None:
            return
        if failure[0] > 0:
            failure[0] -= 1
            return
        del self._failures[name]
        raise failure[1]

    def insert_row(self, table_name: str, row: dict) -> dict:
        stored = {**self.DEFAULTS.get(table_name, {}), **row}

        unique = self.UNIQUE_COLUMNS.get(table_name)
        if unique and any(_same(r.get(unique), stored.get(unique)) for r in self.rows(table_name)):
            raise RuntimeError(
                f'duplicate key value violates unique constraint "{table_name}_{unique}_key" (23505)'
            )

        if "id" not in stored and table_name in self.SEQUENCE_TABLES:
            self._sequence += 1
            stored["id"] = self._sequence
        elif "id" not in stored and table_name == "stock_reservations":
            stored["id"] = str(uuid4())

        now = _now_iso()
        stored.setdefault("created_at", now)
        stored.setdefault("updated_at", now)
        for column in ("quantity_on_hand", "quantity_reserved", "minimum_threshold"):
            if column in stored:
                stored[column] = Decimal(str(stored[column]))

        self.rows(table_name).append(stored)
        return dict(stored)

    def entity(self, item_id: str, kind: str = "finished_good") -> Optional[dict]:
        for row in self.rows("stock_entities"):
            if row["kind"] == kind and _same(row["item_id"], item_id):
                return row
        return None

    # ----- client API -----

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def rpc(self, function: str, params: dict) -> MockRpcCall:
        self.rpc_calls.append(function)
        return MockRpcCall(self, function, params)

    # ----- ledger functions -----

    @staticmethod
    def _figures(row: dict, **flags) -> dict:
        return {
            **flags,
            "quantity_on_hand": row["quantity_on_hand"],
            "quantity_reserved": row["quantity_reserved"],
            "minimum_threshold": row["minimum_threshold"],
        }

    def _rpc_stock_reserve(self, p_kind, p_item_id, p_quantity, p_order_id=None):
        row = self.entity(p_item_id, p_kind)
        if row is None:
            return {"found": False, "reserved": False}

        quantity = Decimal(str(p_quantity))
        if row["quantity_reserved"] + quantity > row["quantity_on_hand"]:
            return self._figures(row, found=True, reserved=False)

        row["quantity_reserved"] += quantity
        row["updated_at"] = _now_iso()
        if p_order_id is not None:
            self.insert_row("stock_reservations", {
                "order_id": p_order_id,
                "kind": p_kind,
                "item_id": p_item_id,
                "quantity": quantity,
            })
        return self._figures(row, found=True, reserved=True)

    def _rpc_stock_release(self, p_kind, p_item_id, p_quantity):
        row = self.entity(p_item_id, p_kind)
        if row is None:
            return {"found": False}
        row["quantity_reserved"] -= min(Decimal(str(p_quantity)), row["quantity_reserved"])
        return self._figures(row, found=True)

    def _settle_order(self, order_id, new_status: str) -> list[dict]:
        settled = []
        active = [
            r for r in self.rows("stock_reservations")
            if _same(r["order_id"], order_id) and r["status"] == "active"
        ]
        for reservation in sorted(active, key=lambda r: r["item_id"]):
            if new_status == "released":
                row = self.entity(reservation["item_id"], reservation["kind"])
                row["quantity_reserved"] -= min(reservation["quantity"], row["quantity_reserved"])
            else:
                self._rpc_stock_debit(reservation["kind"], reservation["item_id"], reservation["quantity"])
            reservation["status"] = new_status
            reservation["updated_at"] = _now_iso()
            settled.append(dict(reservation))
        return settled

    def _rpc_stock_release_order(self, p_order_id):
        return self._settle_order(p_order_id, "released")

    def _rpc_stock_fulfill_order(self, p_order_id):
        return self._settle_order(p_order_id, "fulfilled")

    def _rpc_stock_credit(self, p_kind, p_item_id, p_quantity, p_minimum_threshold=0):
        row = self.entity(p_item_id, p_kind)
        if row is None:
            self.insert_row("stock_entities", {
                "kind": p_kind,
                "item_id": p_item_id,
                "quantity_on_hand": p_quantity,
                "minimum_threshold": p_minimum_threshold,
            })
            row = self.entity(p_item_id, p_kind)
        else:
            row["quantity_on_hand"] += Decimal(str(p_quantity))
        return self._figures(row, found=True)

    def _rpc_stock_debit(self, p_kind, p_item_id, p_quantity):
        row = self.entity(p_item_id, p_kind)
        if row is None:
            return {"found": False}
        quantity = Decimal(str(p_quantity))
        on_hand = max(row["quantity_on_hand"] - quantity, Decimal("0"))
        row["quantity_reserved"] = min(max(row["quantity_reserved"] - quantity, Decimal("0")), on_hand)
        row["quantity_on_hand"] = on_hand
        return self._figures(row, found=True)

    def _rpc_complete_print_job(self, p_job_id, p_minimum_threshold=0):
        job = next((j for j in self.rows("print_jobs") if _same(j["id"], p_job_id)), None)
        if job is None:
            return {"found": False, "completed": False}
        if job["status"] != "in_progress":
            return {"found": True, "completed": False, "job": dict(job)}

        job["status"] = "completed"
        job["completed_at"] = _now_iso()
        self._rpc_stock_credit("finished_good", job["product_id"], job["quantity"], p_minimum_threshold)
        return {"found": True, "completed": True, "job": dict(job)}


class FakeClock:
    """Settable clock for cache expiry and completion estimates."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create an in-memory Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("stock_entities", [
                StockEntityFactory.create(item_id="P1", quantity_on_hand=5)
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wired(mock_supabase, clock, monkeypatch) -> SimpleNamespace:
    """
    Fully wired services on the mock client.

    The module-level singletons are replaced too, so routes use the same
    instances.
    """
    import services.stock_ledger_service as ledger_module
    import services.production_job_service as jobs_module
    import services.availability_service as availability_module
    import services.reservation_service as coordinator_module
    import services.order_service as order_module
    from services.stock_ledger_service import StockLedgerService
    from services.production_job_service import ProductionJobService
    from services.availability_cache import AvailabilityCache
    from services.availability_service import AvailabilityService
    from services.reservation_service import ReservationCoordinator
    from services.order_service import OrderService

    ledger = StockLedgerService(db=mock_supabase)
    jobs = ProductionJobService(db=mock_supabase)
    cache = AvailabilityCache(ttl_seconds=30, clock=clock)
    availability = AvailabilityService(ledger=ledger, jobs=jobs, cache=cache, db=mock_supabase, clock=clock)
    coordinator = ReservationCoordinator(ledger=ledger, cache=cache, jobs=jobs, availability=availability)
    orders = OrderService(coordinator=coordinator, db=mock_supabase)

    monkeypatch.setattr(ledger_module, "_stock_ledger_service", ledger)
    monkeypatch.setattr(jobs_module, "_production_job_service", jobs)
    monkeypatch.setattr(availability_module, "_availability_cache", cache)
    monkeypatch.setattr(availability_module, "_availability_service", availability)
    monkeypatch.setattr(coordinator_module, "_reservation_coordinator", coordinator)
    monkeypatch.setattr(order_module, "_order_service", orders)

    return SimpleNamespace(
        db=mock_supabase,
        ledger=ledger,
        jobs=jobs,
        cache=cache,
        availability=availability,
        coordinator=coordinator,
        orders=orders,
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(wired):
    """
    FastAPI test client backed by the wired mock services.

    Usage:
        def test_endpoint(test_client, wired):
            response = test_client.get("/api/stock")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
