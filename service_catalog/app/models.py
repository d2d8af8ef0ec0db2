"""
Data models for the Catalog Service.
"""

from datetime import datetime, timezone
from typing import Optional, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(BaseModel):
    """Food category."""
    id: str
    name: str
    description: Optional[str] = None


class Food(BaseModel):
    """Catalog entry as read from the store, with its category joined in."""
    id: str
    name: str
    description: Optional[str] = None
    price: float
    images: List[str] = Field(default_factory=list)
    category_id: Optional[str] = None
    category: Optional[Category] = None
    food_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class _FoodFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class FoodCreateRequest(_FoodFields):
    """Request model for creating a food."""
    name: str = Field(..., min_length=1, description="Display name")
    description: Optional[str] = Field(None, description="Free-form description")
    price: float = Field(..., ge=0, allow_inf_nan=False, description="Unit price")
    images: List[str] = Field(default_factory=list, description="Image paths")
    category_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("category_id", "category"),
        description="Category reference"
    )
    food_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("food_type", "foodType"),
        description="Food type, e.g. veg or non-veg"
    )


class FoodUpdateRequest(_FoodFields):
    """Partial update; absent or null fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    images: Optional[List[str]] = None
    category_id: Optional[str] = Field(
        None,
        min_length=1,
        validation_alias=AliasChoices("category_id", "category")
    )
    food_type: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("food_type", "foodType")
    )

    def to_patch(self) -> dict:
        """Fields that were supplied with a value."""
        return self.model_dump(exclude_none=True)


class CategoryCreateRequest(BaseModel):
    """Request model for creating a category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str
