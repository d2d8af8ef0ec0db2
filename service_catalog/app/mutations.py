"""
Food mutations: write the store, then invalidate the cache.
"""

import uuid
from typing import Any, Mapping, Union

from pydantic import BaseModel, ValidationError as PydanticValidationError

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger
from .cache.invalidation import InvalidationPolicy
from .interfaces import FoodStore
from .models import Food, FoodCreateRequest, FoodUpdateRequest, utcnow


def _validated(model: type, fields: Union[BaseModel, Mapping[str, Any]]):
    if isinstance(fields, model):
        return fields
    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(f"{location}: {first['msg']}", {"errors": e.error_count()})


class FoodMutations:
    """Create, update and delete foods.

    Every successful mutation is followed by an awaited invalidation, so the
    store write completes before invalidation is issued and invalidation
    completes before the caller gets its result.
    """

    def __init__(self, store: FoodStore, invalidation: InvalidationPolicy):
        self.store = store
        self.invalidation = invalidation
        self.logger = get_logger("catalog.mutations")

    async def create(self, fields: Union[FoodCreateRequest, Mapping[str, Any]]) -> Food:
        """Persist a new food."""
        request = _validated(FoodCreateRequest, fields)
        now = utcnow()
        food = Food(
            id=uuid.uuid4().hex,
            name=request.name,
            description=request.description,
            price=request.price,
            images=request.images,
            category_id=request.category_id,
            food_type=request.food_type,
            created_at=now,
            updated_at=now
        )

        created = await self.store.insert(food)
        await self.invalidation.invalidate(created.id)

        self.logger.info("Food created", food_id=created.id, name=created.name)
        return created

    async def update(self, food_id: str, fields: Union[FoodUpdateRequest, Mapping[str, Any]]) -> Food:
        """Apply the supplied fields to an existing food."""
        request = _validated(FoodUpdateRequest, fields)

        existing = await self.store.find_by_id(food_id)
        if existing is None:
            raise NotFoundError("Food not found", {"food_id": food_id})

        updated = await self.store.update_by_id(food_id, request.to_patch())
        if updated is None:
            raise NotFoundError("Food not found", {"food_id": food_id})

        await self.invalidation.invalidate(food_id)

        self.logger.info("Food updated", food_id=food_id)
        return updated

    async def delete(self, food_id: str) -> Food:
        """Remove a food, returning what was deleted."""
        deleted = await self.store.delete_by_id(food_id)
        if deleted is None:
            raise NotFoundError("Food not found", {"food_id": food_id})

        await self.invalidation.invalidate(food_id)

        self.logger.info("Food deleted", food_id=food_id)
        return deleted
