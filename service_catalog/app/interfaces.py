"""
Collaborator contracts consumed by the catalog cache-aside layer.

The read path and invalidation policy receive these as injected handles so
that the Redis and PostgreSQL implementations can be swapped for in-memory
fakes in tests.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from .models import Category, Food


@dataclass(frozen=True)
class CacheOutcome:
    """Result of a best-effort cache operation.

    Cache writes and deletions never raise; callers receive one of these,
    may record it, and are free to discard it.
    """
    operation: str
    key: str
    ok: bool
    removed: int = 0
    error: Optional[str] = None

    @classmethod
    def success(cls, operation: str, key: str, removed: int = 0) -> "CacheOutcome":
        return cls(operation=operation, key=key, ok=True, removed=removed)

    @classmethod
    def failure(cls, operation: str, key: str, error: str) -> "CacheOutcome":
        return cls(operation=operation, key=key, ok=False, error=error)


@dataclass(frozen=True)
class FoodFilter:
    """Store-level filter; unset fields do not constrain the result."""
    category_id: Optional[str] = None
    name_pattern: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None


class CacheStore(Protocol):
    """Key-value store with per-entry expiry."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> CacheOutcome:
        ...

    async def delete(self, key: str) -> CacheOutcome:
        ...

    async def delete_matching(self, pattern: str) -> CacheOutcome:
        ...


class FoodStore(Protocol):
    """Authoritative food store; reads return foods with their category joined."""

    async def find_all(self) -> List[Food]:
        ...

    async def find_filtered(self, food_filter: FoodFilter) -> List[Food]:
        ...

    async def find_by_id(self, food_id: str) -> Optional[Food]:
        ...

    async def insert(self, food: Food) -> Food:
        ...

    async def update_by_id(self, food_id: str, patch: Dict[str, Any]) -> Optional[Food]:
        ...

    async def delete_by_id(self, food_id: str) -> Optional[Food]:
        ...


class CategoryLookup(Protocol):
    """Resolves human-readable category names to categories."""

    async def find_category_by_name(self, name: str) -> Optional[Category]:
        ...
