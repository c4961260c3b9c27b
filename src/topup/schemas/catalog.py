"""Catalog schemas."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..models import ProductStatus


class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    display_order: int = 0

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    display_order: int = 0


class ProductRead(BaseModel):
    id: int
    category_id: int
    name: str
    slug: str
    description: Optional[str] = None
    price: Decimal
    status: ProductStatus
    instant_fulfillment: bool
    display_order: int = 0

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    """Admin payload for a new product."""

    category_id: int
    name: str = Field(..., min_length=2, max_length=200)
    slug: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    instant_fulfillment: bool = False
    display_order: int = 0


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    status: Optional[ProductStatus] = None
    instant_fulfillment: Optional[bool] = None
    display_order: Optional[int] = None
