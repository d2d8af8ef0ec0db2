"""
Fixtures and in-memory fakes for Catalog service tests.
"""

import asyncio
import re
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import get_config
from shared.errors import StoreError
from shared.metrics import MetricsCollector
from service_catalog.app.cache.invalidation import InvalidationPolicy
from service_catalog.app.cache.read_path import CacheAsideReader
from service_catalog.app.interfaces import CacheOutcome, FoodFilter
from service_catalog.app.models import Category, Food, utcnow
from service_catalog.app.mutations import FoodMutations


TTL_SECONDS = 3600


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class InMemoryCacheStore:
    """Dict-backed cache store with fixed-window expiry."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.entries: Dict[str, tuple] = {}
        self.get_calls: List[str] = []
        self.set_calls: List[str] = []

    async def get(self, key: str) -> Optional[str]:
        self.get_calls.append(key)
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.entries[key]
            return None
        return value

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheOutcome:
        self.set_calls.append(key)
        self.entries[key] = (value, self.clock() + ttl_seconds)
        return CacheOutcome.success("set", key)

    async def delete(self, key: str) -> CacheOutcome:
        removed = 1 if self.entries.pop(key, None) is not None else 0
        return CacheOutcome.success("delete", key, removed=removed)

    async def delete_matching(self, pattern: str) -> CacheOutcome:
        keys = [key for key in self.entries if fnmatchcase(key, pattern)]
        for key in keys:
            del self.entries[key]
        return CacheOutcome.success("delete_matching", pattern, removed=len(keys))

    def keys(self) -> set:
        return set(self.entries)

    def expires_at(self, key: str) -> float:
        return self.entries[key][1]


class UnreachableCacheStore:
    """Cache store whose every operation fails."""

    def __init__(self):
        self.get_calls: List[str] = []

    async def get(self, key: str) -> Optional[str]:
        self.get_calls.append(key)
        return None

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheOutcome:
        return CacheOutcome.failure("set", key, "Connection refused")

    async def delete(self, key: str) -> CacheOutcome:
        return CacheOutcome.failure("delete", key, "Connection refused")

    async def delete_matching(self, pattern: str) -> CacheOutcome:
        return CacheOutcome.failure("delete_matching", pattern, "Connection refused")


class InMemoryCatalogStore:
    """Dict-backed food and category store that joins categories on read."""

    def __init__(self, latency: float = 0.0):
        self.categories: Dict[str, Category] = {}
        self.foods: Dict[str, Food] = {}
        self.operations: List[str] = []
        self.latency = latency
        self.fail_with: Optional[str] = None

    @property
    def read_count(self) -> int:
        """Number of food list queries served."""
        return sum(1 for op in self.operations if op in ("find_all", "find_filtered"))

    async def _touch(self, operation: str):
        self.operations.append(operation)
        if self.fail_with:
            raise StoreError(self.fail_with, {"operation": operation})
        if self.latency:
            await asyncio.sleep(self.latency)

    def _joined(self, food: Food) -> Food:
        return food.model_copy(
            update={"category": self.categories.get(food.category_id)},
            deep=True
        )

    def add_category(self, name: str, description: Optional[str] = None) -> Category:
        category = Category(id=f"cat-{len(self.categories) + 1}", name=name, description=description)
        self.categories[category.id] = category
        return category

    def add_food(self, name: str, price: float, category: Category, **fields) -> Food:
        food = Food(
            id=f"food-{len(self.foods) + 1}",
            name=name,
            price=price,
            category_id=category.id,
            **fields
        )
        self.foods[food.id] = food
        return food

    def category_named(self, name: str) -> Category:
        return next(c for c in self.categories.values() if c.name == name)

    async def find_all(self) -> List[Food]:
        await self._touch("find_all")
        return [self._joined(food) for food in self.foods.values()]

    async def find_filtered(self, food_filter: FoodFilter) -> List[Food]:
        await self._touch("find_filtered")
        pattern = None
        if food_filter.name_pattern is not None:
            try:
                pattern = re.compile(food_filter.name_pattern, re.IGNORECASE)
            except re.error as e:
                raise StoreError(f"invalid regular expression: {e}")

        matches = []
        for food in self.foods.values():
            if food_filter.category_id is not None and food.category_id != food_filter.category_id:
                continue
            if pattern is not None and not pattern.search(food.name):
                continue
            if food_filter.min_price is not None and food.price < food_filter.min_price:
                continue
            if food_filter.max_price is not None and food.price > food_filter.max_price:
                continue
            matches.append(self._joined(food))
        return matches

    async def find_by_id(self, food_id: str) -> Optional[Food]:
        await self._touch("find_by_id")
        food = self.foods.get(food_id)
        return self._joined(food) if food else None

    async def insert(self, food: Food) -> Food:
        await self._touch("insert")
        if food.category_id not in self.categories:
            raise StoreError("insert or update on table \"foods\" violates foreign key constraint")
        self.foods[food.id] = food.model_copy(update={"category": None})
        return self._joined(self.foods[food.id])

    async def update_by_id(self, food_id: str, patch: Dict[str, Any]) -> Optional[Food]:
        await self._touch("update_by_id")
        food = self.foods.get(food_id)
        if food is None:
            return None
        if "category_id" in patch and patch["category_id"] not in self.categories:
            raise StoreError("insert or update on table \"foods\" violates foreign key constraint")
        self.foods[food_id] = food.model_copy(update={**patch, "updated_at": utcnow()})
        return self._joined(self.foods[food_id])

    async def delete_by_id(self, food_id: str) -> Optional[Food]:
        await self._touch("delete_by_id")
        food = self.foods.pop(food_id, None)
        return self._joined(food) if food else None

    async def find_category_by_name(self, name: str) -> Optional[Category]:
        self.operations.append("find_category_by_name")
        return next((c for c in self.categories.values() if c.name == name), None)

    async def list_categories(self) -> List[Category]:
        return sorted(self.categories.values(), key=lambda c: c.name)

    async def insert_category(self, name: str, description: Optional[str] = None) -> Category:
        return self.add_category(name, description)


@pytest.fixture
def clock():
    """Controllable clock shared by the cache fake."""
    return FakeClock()


@pytest.fixture
def cache(clock):
    """In-memory cache store."""
    return InMemoryCacheStore(clock)


@pytest.fixture
def unreachable_cache():
    """Cache store that fails every operation."""
    return UnreachableCacheStore()


@pytest.fixture
def store():
    """Catalog store seeded with three categories and five foods."""
    catalog = InMemoryCatalogStore()
    drinks = catalog.add_category("Drinks")
    pizza = catalog.add_category("Pizza")
    desserts = catalog.add_category("Desserts")

    catalog.add_food("Margherita Pizza", 12.0, pizza, food_type="veg")
    catalog.add_food("Pepperoni Pizza", 15.5, pizza, food_type="non-veg")
    catalog.add_food("Cola", 3.0, drinks)
    catalog.add_food("Lemonade", 4.0, drinks)
    catalog.add_food("Tiramisu", 8.0, desserts)
    return catalog


@pytest.fixture
def metrics():
    """Catalog metrics collector on a private registry."""
    return MetricsCollector("catalog")


@pytest.fixture
def reader(cache, store, metrics):
    """Cache-aside reader over the in-memory fakes."""
    return CacheAsideReader(cache, store, store, ttl_seconds=TTL_SECONDS, metrics=metrics)


@pytest.fixture
def invalidation(cache, metrics):
    """Default (list_all) invalidation policy."""
    return InvalidationPolicy(cache, metrics=metrics)


@pytest.fixture
def mutations(store, invalidation):
    """Mutation path wired to the default invalidation policy."""
    return FoodMutations(store, invalidation)


@pytest.fixture
def service_config():
    """Service configuration with defaults."""
    return get_config("catalog", 8020)
