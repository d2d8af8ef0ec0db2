"""
Cache invalidation after catalog mutations.
"""

from typing import Optional, TYPE_CHECKING

from shared.config import InvalidationMode
from shared.logging import get_logger
from ..interfaces import CacheOutcome, CacheStore
from .keys import DERIVED_KEY_PATTERN, LIST_ALL_KEY

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


LIST_ALL = "list_all"
ALL_DERIVED = "all_derived"


class InvalidationPolicy:
    """Remove cache entries a food mutation may have staled.

    ``list_all`` (the default) deletes only the unfiltered list key. Category,
    search and price-range entries keep serving their cached result until
    their TTL runs out. ``all_derived`` additionally deletes every derived
    ``foods_*`` key.
    """

    def __init__(
        self,
        cache: CacheStore,
        mode: InvalidationMode = LIST_ALL,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if mode not in (LIST_ALL, ALL_DERIVED):
            raise ValueError(f"Unknown invalidation mode: {mode}")
        self.cache = cache
        self.mode = mode
        self.metrics = metrics
        self.logger = get_logger("catalog.cache.invalidation")

    async def invalidate(self, mutated_entity_id: Optional[str] = None) -> CacheOutcome:
        """Delete the covered keys. Failures are logged and returned, not raised."""
        outcome = await self.cache.delete(LIST_ALL_KEY)

        if self.mode == ALL_DERIVED:
            derived = await self.cache.delete_matching(DERIVED_KEY_PATTERN)
            outcome = CacheOutcome(
                operation="invalidate",
                key=f"{LIST_ALL_KEY},{DERIVED_KEY_PATTERN}",
                ok=outcome.ok and derived.ok,
                removed=outcome.removed + derived.removed,
                error=outcome.error or derived.error,
            )

        if self.metrics:
            self.metrics.increment_counter("cache_invalidations_total", mode=self.mode)

        if outcome.ok:
            self.logger.info(
                "Cache invalidated",
                mode=self.mode,
                food_id=mutated_entity_id,
                removed=outcome.removed
            )
        else:
            if self.metrics:
                self.metrics.increment_counter("cache_errors_total", operation="invalidate")
            self.logger.error(
                "Cache invalidation failed",
                mode=self.mode,
                food_id=mutated_entity_id,
                error=outcome.error
            )

        return outcome
