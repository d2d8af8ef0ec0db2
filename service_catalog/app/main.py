"""
Catalog service for the Food Catalog.
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config

from .cache.invalidation import InvalidationPolicy
from .cache.keys import ByCategory, ByPriceRange, ListAll, SearchByName
from .cache.read_path import CacheAsideReader
from .cache.redis_cache import RedisCacheStore
from .interfaces import CacheStore
from .models import (
    Category, CategoryCreateRequest, Food, FoodCreateRequest, FoodUpdateRequest,
    MessageResponse
)
from .mutations import FoodMutations
from .persistence.postgres import PostgreSQLCatalogStore


SERVICE_NAME = "catalog"
SERVICE_PORT = 8020


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache: Optional[CacheStore] = None,
        store: Optional[PostgreSQLCatalogStore] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.cache = cache if cache is not None else RedisCacheStore(self.config.redis_url)
        self.store = store if store is not None else PostgreSQLCatalogStore(self.config.postgres_dsn)

        self.reader = CacheAsideReader(
            self.cache,
            self.store,
            self.store,
            ttl_seconds=self.config.cache_ttl_seconds,
            metrics=self.metrics
        )
        self.invalidation = InvalidationPolicy(
            self.cache,
            self.config.invalidation_mode,
            metrics=self.metrics
        )
        self.mutations = FoodMutations(self.store, self.invalidation)

        self._setup_catalog_routes()

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Food Catalog - Catalog Service",
                "version": "1.0.0",
                "invalidation_mode": self.invalidation.mode,
                "cache_ttl_seconds": self.reader.ttl_seconds
            }

        @self.app.post("/foods", status_code=201, response_model=Food)
        async def create_food(request: FoodCreateRequest):
            """Create a food."""
            return await self.mutations.create(request)

        @self.app.get("/foods", response_model=List[Food])
        async def get_foods():
            """List every food."""
            return await self.reader.read(ListAll())

        @self.app.get("/foods/category", response_model=List[Food])
        async def get_foods_by_category(
            category: Optional[str] = Query(None, description="Category name, or All")
        ):
            """List foods in a category."""
            return await self.reader.read(ByCategory(category))

        @self.app.get("/foods/search", response_model=List[Food])
        async def search_foods(
            query: Optional[str] = Query(None, description="Case-insensitive name pattern")
        ):
            """Search foods by name."""
            return await self.reader.read(SearchByName(query or ""))

        @self.app.get("/foods/price", response_model=List[Food])
        async def get_foods_by_price(
            min_price: Optional[str] = Query(None, alias="minPrice"),
            max_price: Optional[str] = Query(None, alias="maxPrice")
        ):
            """List foods within a price range."""
            return await self.reader.read(ByPriceRange.from_params(min_price, max_price))

        @self.app.get("/foods/cache/stats")
        async def get_cache_stats():
            """Cache configuration and, when available, Redis statistics."""
            stats = {
                "invalidation_mode": self.invalidation.mode,
                "ttl_seconds": self.reader.ttl_seconds,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
            if hasattr(self.cache, "get_cache_stats"):
                stats["redis"] = await self.cache.get_cache_stats()
            return stats

        @self.app.put("/foods/{food_id}", response_model=Food)
        async def update_food(food_id: str, request: FoodUpdateRequest):
            """Update the supplied fields of a food."""
            return await self.mutations.update(food_id, request)

        @self.app.delete("/foods/{food_id}", response_model=MessageResponse)
        async def delete_food(food_id: str):
            """Delete a food."""
            await self.mutations.delete(food_id)
            return MessageResponse(message="Food deleted")

        @self.app.get("/categories", response_model=List[Category])
        async def get_categories():
            """List categories."""
            return await self.store.list_categories()

        @self.app.post("/categories", status_code=201, response_model=Category)
        async def create_category(request: CategoryCreateRequest):
            """Create a category."""
            return await self.store.insert_category(request.name, request.description)

    async def _check_dependencies(self):
        """Check catalog service dependencies."""
        dependencies = {}

        dependencies["redis"] = "ok" if await self._probe(self.cache) else "error"
        dependencies["postgres"] = "ok" if await self._probe(self.store) else "error"

        return dependencies

    @staticmethod
    async def _probe(component) -> bool:
        health_check = getattr(component, "health_check", None)
        if health_check is None:
            return True
        try:
            return await health_check()
        except Exception:
            return False

    async def start(self):
        """Start catalog service components."""
        if hasattr(self.store, "start"):
            await self.store.start()
        if hasattr(self.cache, "start"):
            await self.cache.start()

        self.logger.info(
            "Catalog service started",
            invalidation_mode=self.invalidation.mode,
            cache_ttl_seconds=self.reader.ttl_seconds
        )

    async def stop(self):
        """Stop catalog service components."""
        if hasattr(self.store, "stop"):
            await self.store.stop()
        if hasattr(self.cache, "stop"):
            await self.cache.stop()

        self.logger.info("Catalog service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create catalog service application."""
    service = CatalogService(config)
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
