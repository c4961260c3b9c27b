"""Transaction status state machine.

This module is the only writer of ``Transaction.status`` and
``Transaction.payment_status``. Every status change is written together with
its ``TransactionLog`` row and first-time timestamps in one unit of work.

Processing graph::

    pending -> processing -> completed
    pending | processing -> cancelled
    pending | processing -> failed
    pending -> completed            (instant-fulfillment products only)

Payment graph::

    pending -> paid | failed | expired
    failed | expired -> paid        (late settlement, recorded for refund)
    paid -> refunded
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..models import PaymentStatus, Transaction, TransactionLog, TransactionStatus
from ..utils.datetime import to_naive_utc, utcnow
from .errors import ConflictingUpdate, IllegalTransition, InvalidState, NotFound

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset(
    {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED, TransactionStatus.FAILED}
)

_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset(
        {TransactionStatus.PROCESSING, TransactionStatus.CANCELLED, TransactionStatus.FAILED}
    ),
    TransactionStatus.PROCESSING: frozenset(
        {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED, TransactionStatus.FAILED}
    ),
}

_PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.EXPIRED}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.EXPIRED: frozenset({PaymentStatus.PAID}),
}

CREATED_MESSAGE = "Transaction created"


def can_transition(
    current: TransactionStatus,
    new: TransactionStatus,
    *,
    instant_fulfillment: bool = False,
) -> bool:
    """Return whether ``current -> new`` is an edge of the processing graph."""

    current, new = TransactionStatus(current), TransactionStatus(new)
    if new in _TRANSITIONS.get(current, frozenset()):
        return True
    return (
        instant_fulfillment
        and current == TransactionStatus.PENDING
        and new == TransactionStatus.COMPLETED
    )


def can_change_payment(current: PaymentStatus, new: PaymentStatus) -> bool:
    return PaymentStatus(new) in _PAYMENT_TRANSITIONS.get(PaymentStatus(current), frozenset())


def generate_transaction_code() -> str:
    return "TXN" + uuid.uuid4().hex[:8].upper()


def open_transaction(
    session: Session,
    transaction: Transaction,
    *,
    expires_at: Optional[datetime] = None,
    message: str = CREATED_MESSAGE,
) -> Transaction:
    """Insert ``transaction`` in ``pending`` together with its creation log row."""

    now = utcnow()
    transaction.status = TransactionStatus.PENDING
    transaction.payment_status = PaymentStatus.PENDING
    if not transaction.transaction_code:
        transaction.transaction_code = generate_transaction_code()
    transaction.created_at = now
    transaction.updated_at = now
    if expires_at is not None:
        transaction.expired_at = to_naive_utc(expires_at)
    else:
        transaction.expired_at = now + timedelta(hours=get_settings().transaction_ttl_hours)

    session.add(transaction)
    session.flush()

    session.add(
        TransactionLog(
            transaction_id=transaction.id,
            status_from=None,
            status_to=TransactionStatus.PENDING,
            message=message,
            created_at=now,
        )
    )
    session.flush()
    return transaction


def _lock_transaction(session: Session, transaction_id: int) -> Transaction:
    stmt = (
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    transaction = session.execute(stmt).scalar_one_or_none()
    if transaction is None:
        raise NotFound(f"Transaction {transaction_id} not found", reason="transaction_not_found")
    return transaction


def transition(
    session: Session,
    transaction_id: int,
    new_status: TransactionStatus,
    message: Optional[str] = None,
    *,
    admin_id: Optional[int] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Transaction:
    """Move a transaction to ``new_status``.

    Re-applying the current status is a no-op and writes no log row. Losing a
    race against a concurrent transition raises ``ConflictingUpdate`` so the
    caller can retry against the fresh state.
    """

    new_status = TransactionStatus(new_status)
    transaction = _lock_transaction(session, transaction_id)
    current = TransactionStatus(transaction.status)

    if current == new_status:
        return transaction

    instant = bool(transaction.product and transaction.product.instant_fulfillment)
    if not can_transition(current, new_status, instant_fulfillment=instant):
        raise IllegalTransition(current.value, new_status.value)

    now = utcnow()
    values: dict[str, Any] = {"status": new_status, "updated_at": now}
    if new_status == TransactionStatus.PROCESSING and transaction.processed_at is None:
        values["processed_at"] = now
    if new_status == TransactionStatus.COMPLETED and transaction.completed_at is None:
        values["completed_at"] = now

    result = session.execute(
        update(Transaction)
        .where(Transaction.id == transaction.id, Transaction.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictingUpdate(
            f"Transaction {transaction.transaction_code} changed while updating its status.",
        )

    session.add(
        TransactionLog(
            transaction_id=transaction.id,
            status_from=current,
            status_to=new_status,
            message=message or f"Status updated to {new_status.value}",
            log_metadata=metadata,
            created_by_admin=admin_id,
            created_at=now,
        )
    )
    session.flush()
    session.refresh(transaction)
    logger.info(
        "transaction %s moved %s -> %s", transaction.transaction_code, current.value, new_status.value
    )
    return transaction


def update_payment_status(
    session: Session,
    transaction_id: int,
    payment_status: PaymentStatus,
    *,
    reference: Optional[str] = None,
    message: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> Transaction:
    """Record a payment-status change and drive the processing status from it.

    ``paid`` moves a pending transaction to ``processing`` (``completed`` for
    instant-fulfillment products); ``failed``/``expired`` fail a transaction
    that is not terminal yet; ``refunded`` leaves the processing status alone.
    A late ``paid`` on an expired or failed payment is stored with its
    reference but never reopens a terminal transaction.
    """

    payment_status = PaymentStatus(payment_status)
    transaction = _lock_transaction(session, transaction_id)
    current = PaymentStatus(transaction.payment_status)

    if current == payment_status:
        return transaction
    if not can_change_payment(current, payment_status):
        raise InvalidState(
            f"Cannot move payment from '{current.value}' to '{payment_status.value}'.",
            reason="illegal_payment_transition",
        )

    values: dict[str, Any] = {"payment_status": payment_status, "updated_at": utcnow()}
    if reference:
        values["payment_reference"] = reference
    result = session.execute(
        update(Transaction)
        .where(Transaction.id == transaction.id, Transaction.payment_status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictingUpdate(
            f"Transaction {transaction.transaction_code} payment changed while updating it.",
        )
    session.flush()
    session.refresh(transaction)
    logger.info(
        "transaction %s payment %s -> %s", transaction.transaction_code, current.value, payment_status.value
    )

    status = TransactionStatus(transaction.status)
    if payment_status == PaymentStatus.PAID:
        if status == TransactionStatus.PENDING:
            target = (
                TransactionStatus.COMPLETED
                if transaction.product and transaction.product.instant_fulfillment
                else TransactionStatus.PROCESSING
            )
            transaction = transition(
                session, transaction.id, target, message or "Payment received", metadata=metadata
            )
        elif status in TERMINAL_STATUSES and status != TransactionStatus.COMPLETED:
            logger.warning(
                "transaction %s was paid while %s; needs manual refund", transaction.transaction_code, status.value
            )
    elif payment_status in (PaymentStatus.FAILED, PaymentStatus.EXPIRED):
        if status not in TERMINAL_STATUSES:
            transaction = transition(
                session,
                transaction.id,
                TransactionStatus.FAILED,
                message or f"Payment {payment_status.value}",
                metadata=metadata,
            )
    return transaction
