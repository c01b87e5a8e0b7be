"""
Short-lived, product-scoped cache of availability answers.

Single process only. Entries expire after ttl_seconds and are dropped
whenever stock or the production queue of the product changes. The cache
is advisory: reservations are always decided by the ledger's atomic
update, never by a cached answer.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from models.availability import AvailabilityAnswer
from services.fulfillment_planner import answer_for_quantity

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]
Compute = Callable[[str, int], AvailabilityAnswer]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AvailabilityCache:
    """
    Availability answers keyed by product id.

    An entry computed for quantity N also answers any request for a
    quantity <= N; larger requests are recomputed and replace the entry.
    """

    def __init__(
        self,
        ttl_seconds: int = 30,
        clock: Clock = utc_now,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self._entries: dict[str, tuple[datetime, AvailabilityAnswer]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, product_id: str, quantity: int) -> Optional[AvailabilityAnswer]:
        """Fresh cached answer covering quantity, or None."""
        product_id = str(product_id)
        now = self.clock()
        with self._lock:
            entry = self._entries.get(product_id)
            if entry is None:
                return None
            expires_at, answer = entry
            if now >= expires_at:
                del self._entries[product_id]
                return None
            if answer.requested_quantity < quantity:
                return None

        if answer.requested_quantity == quantity:
            return answer
        return answer_for_quantity(answer, quantity)

    def put(self, answer: AvailabilityAnswer) -> None:
        with self._lock:
            self._entries[answer.product_id] = (self.clock() + self.ttl, answer)

    def get_or_compute(
        self,
        product_id: str,
        quantity: int,
        compute: Compute,
    ) -> AvailabilityAnswer:
        """Return a covering cached answer, or compute and store a new one."""
        cached = self.get(product_id, quantity)
        with self._lock:
            if cached is not None:
                self.hits += 1
            else:
                self.misses += 1
        if cached is not None:
            logger.debug("availability_cache_hit", product_id=product_id, quantity=quantity)
            return cached

        logger.debug("availability_cache_miss", product_id=product_id, quantity=quantity)
        answer = compute(str(product_id), quantity)
        self.put(answer)
        return answer

    def invalidate(self, product_id: str) -> None:
        """Drop any cached answer for the product."""
        with self._lock:
            removed = self._entries.pop(str(product_id), None)
        if removed is not None:
            logger.debug("availability_cache_invalidated", product_id=product_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("availability_cache_cleared")

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "ttl_seconds": int(self.ttl.total_seconds()),
            }
