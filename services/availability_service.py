"""
Availability service - can N units of a product be promised, and by when.

Reads finished-goods stock from the ledger and the open print jobs of the
product, then hands both to the fulfillment planner. Read-only: nothing
here mutates stock. Answers go through the availability cache.
"""

from typing import Optional

import structlog

from config import get_supabase_client, settings
from models.availability import AvailabilityAnswer, AvailabilitySummary
from models.stock import StockKind
from services.availability_cache import AvailabilityCache, Clock, utc_now
from services.fulfillment_planner import plan_fulfillment
from services.production_job_service import ProductionJobService, get_production_job_service
from services.stock_ledger_service import StockLedgerService, get_stock_ledger_service
from exceptions import ProductNotFoundError, StorageFaultError

logger = structlog.get_logger(__name__)


class AvailabilityService:
    """
    Availability business logic.

    Core methods:
    - compute_availability: Fresh answer straight from storage
    - get_availability: Cache-first answer
    - get_summary: Stock and production overview for a product
    """

    def __init__(
        self,
        ledger: Optional[StockLedgerService] = None,
        jobs: Optional[ProductionJobService] = None,
        cache: Optional[AvailabilityCache] = None,
        db=None,
        clock: Clock = utc_now,
    ):
        self.ledger = ledger or get_stock_ledger_service()
        self.jobs = jobs or get_production_job_service()
        self.cache = cache or get_availability_cache()
        self.db = db if db is not None else self.ledger.db
        self.clock = clock

    def _ensure_product(self, product_id: str) -> None:
        try:
            result = (
                self.db.table("products")
                .select("id")
                .eq("id", product_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_product_failed", product_id=product_id, error=str(e))
            raise StorageFaultError("select", str(e)) from e

        if not result.data:
            raise ProductNotFoundError(product_id)

    def compute_availability(self, product_id: str, quantity: int) -> AvailabilityAnswer:
        """
        Compute availability without the cache.

        Raises:
            ProductNotFoundError: If the product doesn't exist
            StorageFaultError: If a read fails
        """
        product_id = str(product_id)
        self._ensure_product(product_id)

        stock = self.ledger.find_stock(product_id, StockKind.FINISHED_GOOD)
        open_jobs = self.jobs.get_open_jobs(product_id)

        answer = plan_fulfillment(product_id, stock, open_jobs, quantity, self.clock())

        logger.info(
            "availability_computed",
            product_id=product_id,
            requested=quantity,
            available=str(answer.available_quantity),
            available_now=answer.available_now,
            can_fulfill=answer.can_fulfill,
            open_jobs=len(open_jobs)
        )
        return answer

    def get_availability(self, product_id: str, quantity: int) -> AvailabilityAnswer:
        """Cache-first availability for a product and quantity."""
        return self.cache.get_or_compute(str(product_id), quantity, self.compute_availability)

    def get_summary(self, product_id: str) -> AvailabilitySummary:
        """On-hand, in-production and potential totals for a product."""
        answer = self.get_availability(product_id, 1)
        return AvailabilitySummary(
            product_id=answer.product_id,
            available_stock=answer.available_quantity,
            in_production=answer.in_production,
            total_available=answer.available_quantity + answer.in_production,
            has_active_jobs=answer.in_production > 0,
        )


# Singleton instances for convenience
_availability_cache: Optional[AvailabilityCache] = None
_availability_service: Optional[AvailabilityService] = None


def get_availability_cache() -> AvailabilityCache:
    """Get or create the process-wide AvailabilityCache."""
    global _availability_cache
    if _availability_cache is None:
        _availability_cache = AvailabilityCache(ttl_seconds=settings.availability_cache_ttl_seconds)
    return _availability_cache


def get_availability_service() -> AvailabilityService:
    """Get or create AvailabilityService instance."""
    global _availability_service
    if _availability_service is None:
        _availability_service = AvailabilityService()
    return _availability_service
