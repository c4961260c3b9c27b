"""Payment gateway notification endpoint."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from ...clients import PaymentGatewayClient, get_payment_gateway
from ...core.database import get_db
from ...schemas import TransactionRead
from ...services import payment_service
from ...services.errors import ServiceError
from ...services.unit_of_work import run_atomic

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/payment",
    response_model=TransactionRead,
    summary="Payment gateway notification",
    responses={
        401: {"description": "Invalid signature"},
        404: {"description": "Transaction not found"},
        409: {"description": "Payment status change not allowed"},
    },
)
def payment_notification(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    payment_gateway: PaymentGatewayClient = Depends(get_payment_gateway),
) -> TransactionRead:
    """Apply a gateway notification. Repeated notifications are no-ops."""

    try:
        transaction = run_atomic(
            db, lambda: payment_service.handle_notification(db, payload, payment_gateway=payment_gateway)
        )
        db.refresh(transaction)
        return transaction
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
