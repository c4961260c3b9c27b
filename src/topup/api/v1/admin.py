"""Admin-only listings."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...models import PaymentStatus, TransactionStatus
from ...schemas import TransactionRead
from ...services import transaction_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/transactions", response_model=List[TransactionRead], summary="List all transactions (admin)")
def list_all_transactions(
    *,
    status_filter: Optional[TransactionStatus] = Query(None, alias="status", description="Filter by processing status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    user_id: Optional[int] = Query(None, description="Filter by owner"),
    date_from: Optional[datetime] = Query(None, description="Created at or after (inclusive)"),
    date_to: Optional[datetime] = Query(None, description="Created before (exclusive)"),
    limit: int = Query(50, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    transactions = transaction_service.list_transactions(
        db,
        status=status_filter,
        payment_status=payment_status,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return list(transactions)
