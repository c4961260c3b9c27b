"""Catalog endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.cache import CacheService, get_cache
from ...core.database import get_db
from ...schemas import CategoryCreate, CategoryRead, ProductCreate, ProductRead, ProductUpdate
from ...services import catalog_service
from ...services.errors import ServiceError

router = APIRouter(tags=["catalog"])


@router.get("/categories", response_model=List[CategoryRead], summary="Active categories")
def list_categories(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> List[CategoryRead]:
    return catalog_service.list_categories(db, cache)


@router.post("/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED, summary="Create a category")
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> CategoryRead:
    try:
        category = catalog_service.create_category(db, cache, **payload.model_dump())
        db.commit()
        db.refresh(category)
        return category
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.get("/products", response_model=List[ProductRead], summary="Active products")
def list_products(
    category_id: Optional[int] = Query(None, description="Only products of this category"),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> List[ProductRead]:
    return catalog_service.list_products(db, cache, category_id=category_id)


@router.get("/products/{product_id}", response_model=ProductRead, summary="Get a product")
def get_product(product_id: int, db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> ProductRead:
    try:
        return catalog_service.get_product(db, cache, product_id)
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.post("/products", response_model=ProductRead, status_code=status.HTTP_201_CREATED, summary="Create a product")
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> ProductRead:
    try:
        product = catalog_service.create_product(db, cache, **payload.model_dump())
        db.commit()
        db.refresh(product)
        return product
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.patch("/products/{product_id}", response_model=ProductRead, summary="Edit a product")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> ProductRead:
    try:
        product = catalog_service.update_product(db, cache, product_id, **payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(product)
        return product
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
