"""
Cache-aside read path for catalog queries.
"""

import json
from typing import List, Optional, TYPE_CHECKING

from pydantic import ValidationError as PydanticValidationError

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..interfaces import CacheOutcome, CacheStore, CategoryLookup, FoodFilter, FoodStore
from ..models import Food
from .keys import (
    ByCategory, ByPriceRange, ListAll, LogicalQuery, SearchByName, build_key
)

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TTL_SECONDS = 3600


class CacheAsideReader:
    """Serve catalog queries from the cache, falling back to the store.

    Hits return without touching the store. Misses (including an unreachable
    cache or an undecodable entry) query the store, populate the cache with a
    fixed TTL and return the fresh result. There is no single-flight: two
    concurrent misses on one key both query the store and both write the
    cache.
    """

    def __init__(
        self,
        cache: CacheStore,
        store: FoodStore,
        categories: CategoryLookup,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.store = store
        self.categories = categories
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("catalog.cache.read_path")

    async def read(self, query: LogicalQuery) -> List[Food]:
        """Return the foods matching ``query``."""
        key = build_key(query)

        cached = await self.cache.get(key)
        if cached is not None:
            foods = self._decode(key, cached)
            if foods is not None:
                self._count("cache_hits_total", query_kind=query.kind)
                self.logger.debug("Cache hit", key=key, query_kind=query.kind)
                return foods

        self._count("cache_misses_total", query_kind=query.kind)
        self.logger.debug("Cache miss", key=key, query_kind=query.kind)

        if self.metrics:
            with self.metrics.time_operation("store_query_duration_seconds", query_kind=query.kind):
                foods = await self._query_store(query)
        else:
            foods = await self._query_store(query)

        # Population is best-effort; its outcome is recorded and otherwise discarded.
        outcome = await self.cache.set_with_ttl(key, self._encode(foods), self.ttl_seconds)
        self._record_outcome(outcome)
        return foods

    async def _query_store(self, query: LogicalQuery) -> List[Food]:
        """Run the store query equivalent to ``query``."""
        if isinstance(query, ListAll):
            return await self.store.find_all()

        if isinstance(query, ByCategory):
            name = query.category_name
            if name is None:
                return await self.store.find_all()
            category = await self.categories.find_category_by_name(name)
            if category is None:
                raise NotFoundError("Category not found", {"category": name})
            return await self.store.find_filtered(FoodFilter(category_id=category.id))

        if isinstance(query, SearchByName):
            return await self.store.find_filtered(FoodFilter(name_pattern=query.substring))

        if isinstance(query, ByPriceRange):
            return await self.store.find_filtered(
                FoodFilter(min_price=query.min_price, max_price=query.max_price)
            )

        raise TypeError(f"Unsupported query type: {type(query).__name__}")

    def _record_outcome(self, outcome: CacheOutcome) -> None:
        """Note a failed population; the read result is unaffected."""
        if outcome.ok:
            return
        self._count("cache_errors_total", operation=outcome.operation)
        self.logger.warning("Cache population failed", key=outcome.key, error=outcome.error)

    @staticmethod
    def _encode(foods: List[Food]) -> str:
        return json.dumps([food.model_dump(mode="json") for food in foods])

    def _decode(self, key: str, payload: str) -> Optional[List[Food]]:
        """Deserialize a cached payload; None means treat the entry as a miss."""
        try:
            return [Food.model_validate(item) for item in json.loads(payload)]
        except (TypeError, json.JSONDecodeError, PydanticValidationError) as e:
            self.logger.warning("Discarding undecodable cache entry", key=key, error=str(e))
            return None

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
