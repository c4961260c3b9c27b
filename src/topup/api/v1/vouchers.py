"""Voucher endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...models import VoucherStatus
from ...schemas import (
    VoucherCreate,
    VoucherEvaluateRequest,
    VoucherEvaluation,
    VoucherRead,
    VoucherUpdate,
    VoucherUsageStats,
)
from ...services import voucher_evaluator, voucher_service
from ...services.errors import ServiceError

router = APIRouter(prefix="/vouchers", tags=["vouchers"])


@router.post(
    "/evaluate",
    response_model=VoucherEvaluation,
    summary="Check a voucher against a product",
    responses={
        200: {
            "description": "Evaluation result; `valid=false` carries a reason code",
            "content": {
                "application/json": {
                    "example": {
                        "valid": False,
                        "discount_amount": "0.00",
                        "reason": "scope_mismatch",
                        "message": "Voucher does not apply to this product.",
                    }
                }
            },
        },
        404: {"description": "Product not found"},
    },
)
def evaluate_voucher(payload: VoucherEvaluateRequest, db: Session = Depends(get_db)) -> VoucherEvaluation:
    """Preview the discount; nothing is reserved until the transaction is created."""

    try:
        evaluation = voucher_evaluator.evaluate_for_product(
            db, payload.code, user_id=payload.user_id, product_id=payload.product_id
        )
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
    return VoucherEvaluation(
        valid=evaluation.valid,
        discount_amount=evaluation.discount_amount,
        reason=evaluation.reason,
        message=evaluation.message,
    )


@router.post("", response_model=VoucherRead, status_code=status.HTTP_201_CREATED, summary="Create a voucher")
def create_voucher(payload: VoucherCreate, db: Session = Depends(get_db)) -> VoucherRead:
    """Create a voucher.

    Example request body::

        {
            "code": "hemat10",
            "discount_type": "percentage",
            "value": 10,
            "max_discount_amount": 5000,
            "scope": "category",
            "target_ids": [3],
            "quota": 100,
            "start_date": "2026-01-01",
            "end_date": "2026-01-31"
        }
    """

    try:
        voucher = voucher_service.create_voucher(db, **payload.model_dump())
        db.commit()
        db.refresh(voucher)
        return voucher
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.get("", response_model=List[VoucherRead], summary="List vouchers")
def list_vouchers(
    *,
    status_filter: Optional[VoucherStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[VoucherRead]:
    vouchers = voucher_service.list_vouchers(db, status=status_filter, limit=limit, offset=offset)
    db.commit()
    return [VoucherRead.model_validate(v) for v in vouchers]


@router.get("/{code}", response_model=VoucherRead, summary="Get a voucher by code")
def get_voucher(code: str, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        voucher = voucher_service.get_voucher_by_code(db, code)
        db.commit()
        db.refresh(voucher)
        return voucher
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.patch("/{code}", response_model=VoucherRead, summary="Edit a voucher")
def update_voucher(code: str, payload: VoucherUpdate, db: Session = Depends(get_db)) -> VoucherRead:
    try:
        voucher = voucher_service.update_voucher(db, code, **payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(voucher)
        return voucher
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.delete("/{code}", response_model=VoucherRead, summary="Deactivate a voucher")
def deactivate_voucher(code: str, db: Session = Depends(get_db)) -> VoucherRead:
    """Vouchers are never removed; deleting one makes it inactive."""

    try:
        voucher = voucher_service.deactivate_voucher(db, code)
        db.commit()
        db.refresh(voucher)
        return voucher
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.get("/{code}/usage-stats", response_model=VoucherUsageStats, summary="Voucher redemption summary")
def voucher_usage_stats(code: str, db: Session = Depends(get_db)) -> VoucherUsageStats:
    try:
        stats = voucher_service.usage_stats(db, code)
        db.commit()
        return VoucherUsageStats(**stats)
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
