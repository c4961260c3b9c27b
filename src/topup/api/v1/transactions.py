"""Transaction endpoints."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from ...clients import PaymentGatewayClient, WhatsAppClient, get_messenger, get_payment_gateway
from ...core.database import get_db
from ...models import TransactionStatus
from ...schemas import (
    TransactionCancel,
    TransactionCreate,
    TransactionLogRead,
    TransactionRead,
    TransactionReceipt,
    TransactionStatusUpdate,
)
from ...services import transaction_service, transaction_state
from ...services.errors import ServiceError
from ...services.unit_of_work import run_atomic

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post(
    "",
    response_model=TransactionReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Create a top-up transaction",
    responses={
        201: {"description": "Transaction created; `degraded` lists follow-ups that failed"},
        404: {"description": "User, product or voucher not found"},
        409: {"description": "Voucher or product not usable"},
        422: {"description": "Invalid payload"},
    },
)
def create_transaction(
    payload: TransactionCreate,
    request: Request,
    db: Session = Depends(get_db),
    payment_gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    messenger: WhatsAppClient = Depends(get_messenger),
) -> TransactionReceipt:
    """Create a pending transaction and request its payment link.

    Example request body::

        {
            "user_id": 1,
            "product_id": 12,
            "game_account": {"game_account": "123456789", "game_zone": "2001"},
            "payment_method": "gopay",
            "whatsapp": "081234567890",
            "voucher_code": "HEMAT10"
        }

    A saved account can be used instead with ``"game_account_id": 3``.
    """

    try:
        transaction, degraded = transaction_service.create_transaction(
            db,
            user_id=payload.user_id,
            product_id=payload.product_id,
            game_account=payload.game_account.model_dump() if payload.game_account else None,
            game_account_id=payload.game_account_id,
            payment_method=payload.payment_method,
            whatsapp=payload.whatsapp,
            voucher_code=payload.voucher_code,
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
            payment_gateway=payment_gateway,
            messenger=messenger,
        )
        return TransactionReceipt(transaction=TransactionRead.model_validate(transaction), degraded=degraded)
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.get("", response_model=List[TransactionRead], summary="List a user's transactions")
def list_transactions(
    *,
    user_id: int = Query(..., description="Owner of the transactions"),
    status_filter: Optional[TransactionStatus] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(20, ge=1, le=100, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    transactions = transaction_service.list_user_transactions(
        db, user_id=user_id, status=status_filter, limit=limit, offset=offset
    )
    return list(transactions)


@router.get("/{transaction_code}", response_model=TransactionRead, summary="Get a transaction by code")
def get_transaction(transaction_code: str, db: Session = Depends(get_db)) -> TransactionRead:
    try:
        return transaction_service.get_transaction_by_code(db, transaction_code)
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.get(
    "/{transaction_code}/logs",
    response_model=List[TransactionLogRead],
    summary="Status history of a transaction",
)
def get_transaction_logs(transaction_code: str, db: Session = Depends(get_db)) -> List[TransactionLogRead]:
    try:
        transaction = transaction_service.get_transaction_by_code(db, transaction_code)
    except ServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
    return list(transaction_service.list_transaction_logs(db, transaction.id))


@router.post(
    "/{transaction_code}/status",
    response_model=TransactionRead,
    summary="Move a transaction to a new status (admin)",
    responses={
        404: {"description": "Transaction not found"},
        409: {"description": "Illegal transition or concurrent update"},
    },
)
def update_transaction_status(
    transaction_code: str,
    payload: TransactionStatusUpdate,
    db: Session = Depends(get_db),
) -> TransactionRead:
    """Apply an admin status change; repeating the current status is a no-op."""

    try:
        transaction = transaction_service.get_transaction_by_code(db, transaction_code)
        transaction_id = transaction.id
        transaction = run_atomic(
            db,
            lambda: transaction_state.transition(
                db,
                transaction_id,
                payload.status,
                payload.message,
                admin_id=payload.admin_id,
                metadata=payload.metadata,
            ),
        )
        db.refresh(transaction)
        return transaction
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.post(
    "/{transaction_code}/payment-url",
    response_model=TransactionRead,
    summary="Request the payment link again for a pending transaction",
)
def retry_payment_url(
    transaction_code: str,
    db: Session = Depends(get_db),
    payment_gateway: PaymentGatewayClient = Depends(get_payment_gateway),
) -> TransactionRead:
    try:
        transaction = transaction_service.attach_payment_url(db, transaction_code, payment_gateway)
        db.commit()
        db.refresh(transaction)
        return transaction
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.post(
    "/{transaction_code}/cancel",
    response_model=TransactionRead,
    summary="Cancel a pending transaction (customer)",
    responses={
        404: {"description": "Transaction not found for this user"},
        409: {"description": "Transaction is no longer pending"},
    },
)
def cancel_transaction(
    transaction_code: str,
    payload: TransactionCancel,
    db: Session = Depends(get_db),
) -> TransactionRead:
    try:
        transaction = run_atomic(
            db,
            lambda: transaction_service.cancel_transaction(
                db, transaction_code, user_id=payload.user_id, reason=payload.reason
            ),
        )
        db.refresh(transaction)
        return transaction
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
