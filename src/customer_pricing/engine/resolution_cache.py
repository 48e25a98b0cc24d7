"""
Resolution Cache - Session-lifetime store of resolved customer prices.

Holds the last known ResolutionResult per (customer, product) pair. Entries
never expire on a timer; they are removed only through invalidate().
"""
import logging
from typing import Optional

from .models import ResolutionResult

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


def cache_key(customer_id: str, product_id: str) -> CacheKey:
    """Build the cache key for a customer/product pair."""
    return (str(customer_id), str(product_id))


class ResolutionCache:
    """
    In-memory cache of price resolutions keyed by (customer_id, product_id).

    All mutation happens on one event loop between awaits, so no locking is
    needed. Each write is a single key assignment.
    """

    def __init__(self):
        self._entries: dict[CacheKey, ResolutionResult] = {}
        # Simple metrics
        self.hits = 0
        self.misses = 0
        self.sets = 0

    def get(self, customer_id: str, product_id: str) -> Optional[ResolutionResult]:
        """Return the cached result for a pair, or None."""
        result = self._entries.get(cache_key(customer_id, product_id))
        if result is None:
            self.misses += 1
        else:
            self.hits += 1
        return result

    def peek(self, customer_id: str, product_id: str) -> Optional[ResolutionResult]:
        """Like get() but without touching the hit/miss counters."""
        return self._entries.get(cache_key(customer_id, product_id))

    def set(self, customer_id: str, product_id: str, result: ResolutionResult):
        """Store (or overwrite) the result for a pair."""
        key = cache_key(customer_id, product_id)
        self._entries[key] = result
        self.sets += 1
        logger.debug("Cache set: %s -> %s %.2f", key, result.kind, result.price)

    def update(self, customer_id: str, results: dict[str, ResolutionResult]):
        """Upsert many results for one customer."""
        for product_id, result in results.items():
            self.set(customer_id, product_id, result)

    def invalidate(self, customer_id: Optional[str] = None, product_id: Optional[str] = None) -> int:
        """
        Remove cached entries.

        - customer and product: that one entry
        - customer only: every entry for the customer
        - nothing: the whole cache

        Returns the number of entries removed. Idempotent.
        """
        if product_id is not None and customer_id is None:
            raise ValueError("product_id requires customer_id")

        if customer_id is not None and product_id is not None:
            removed = 1 if self._entries.pop(cache_key(customer_id, product_id), None) else 0
        elif customer_id is not None:
            customer_id = str(customer_id)
            stale = [key for key in self._entries if key[0] == customer_id]
            for key in stale:
                del self._entries[key]
            removed = len(stale)
        else:
            removed = len(self._entries)
            self._entries.clear()

        logger.info(
            "Cache invalidated (customer=%s, product=%s): %d entries removed",
            customer_id, product_id, removed,
        )
        return removed

    def keys(self) -> list[CacheKey]:
        return list(self._entries)

    def stats(self) -> dict[str, int]:
        """Return simple cache metrics for observability."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "size": len(self._entries),
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key) -> bool:
        return cache_key(*key) in self._entries
