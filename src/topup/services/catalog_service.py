"""Catalog reads with a read-through cache, plus admin writes."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.cache import CATEGORIES_KEY, PRODUCT_KEY, PRODUCTS_KEY, CacheService
from ..models import Category, CategoryStatus, Product, ProductStatus
from ..utils.money import to_money
from .errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def _product_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "category_id": product.category_id,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "price": str(to_money(product.price)),
        "status": ProductStatus(product.status).value,
        "instant_fulfillment": bool(product.instant_fulfillment),
        "display_order": product.display_order,
    }


def _category_dict(category: Category) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "display_order": category.display_order,
    }


def list_categories(session: Session, cache: CacheService) -> list[dict[str, Any]]:
    cached = cache.get(CATEGORIES_KEY)
    if cached is not None:
        logger.debug("serving categories from cache")
        return cached

    stmt = (
        select(Category)
        .where(Category.status == CategoryStatus.ACTIVE)
        .order_by(Category.display_order.asc(), Category.name.asc())
    )
    categories = [_category_dict(c) for c in session.execute(stmt).scalars().all()]
    cache.set(CATEGORIES_KEY, categories)
    return categories


def list_products(session: Session, cache: CacheService, *, category_id: Optional[int] = None) -> list[dict[str, Any]]:
    """Active products ordered for display; only the unfiltered list is cached."""

    if category_id is None:
        cached = cache.get(PRODUCTS_KEY)
        if cached is not None:
            logger.debug("serving products from cache")
            return cached

    stmt = (
        select(Product)
        .where(Product.status == ProductStatus.ACTIVE)
        .order_by(Product.display_order.asc(), Product.name.asc())
    )
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    products = [_product_dict(p) for p in session.execute(stmt).scalars().all()]

    if category_id is None:
        cache.set(PRODUCTS_KEY, products)
    return products


def get_product(session: Session, cache: CacheService, product_id: int) -> dict[str, Any]:
    key = PRODUCT_KEY.format(product_id=product_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    product = session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", reason="product_not_found")
    data = _product_dict(product)
    cache.set(key, data)
    return data


def create_category(session: Session, cache: CacheService, *, name: str, slug: str, description: Optional[str] = None, display_order: int = 0) -> Category:
    if session.execute(select(Category.id).where(Category.slug == slug)).scalar_one_or_none() is not None:
        raise ValidationFailed(f"Category slug {slug} already exists.", reason="slug_taken")
    category = Category(name=name, slug=slug, description=description, display_order=display_order)
    session.add(category)
    session.flush()
    cache.delete(CATEGORIES_KEY)
    return category


def create_product(
    session: Session,
    cache: CacheService,
    *,
    category_id: int,
    name: str,
    slug: str,
    price: Decimal,
    description: Optional[str] = None,
    instant_fulfillment: bool = False,
    display_order: int = 0,
) -> Product:
    if session.get(Category, category_id) is None:
        raise NotFound(f"Category {category_id} not found", reason="category_not_found")
    if session.execute(select(Product.id).where(Product.slug == slug)).scalar_one_or_none() is not None:
        raise ValidationFailed(f"Product slug {slug} already exists.", reason="slug_taken")
    if Decimal(str(price)) < 0:
        raise ValidationFailed("Price cannot be negative.", reason="invalid_price")

    product = Product(
        category_id=category_id,
        name=name,
        slug=slug,
        description=description,
        price=to_money(price),
        instant_fulfillment=instant_fulfillment,
        display_order=display_order,
    )
    session.add(product)
    session.flush()
    cache.delete(PRODUCTS_KEY)
    logger.info("product %s created", product.slug)
    return product


def update_product(session: Session, cache: CacheService, product_id: int, **changes: Any) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", reason="product_not_found")

    for field in ("name", "description", "price", "status", "instant_fulfillment", "display_order", "category_id"):
        if field in changes and changes[field] is not None:
            value = changes[field]
            if field == "price":
                value = to_money(value)
            elif field == "status":
                value = ProductStatus(value)
            setattr(product, field, value)
    session.flush()
    cache.delete(PRODUCTS_KEY, PRODUCT_KEY.format(product_id=product_id))
    return product
