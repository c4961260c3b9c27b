"""Expiry sweep for unpaid or stuck transactions."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import PaymentStatus, Transaction, TransactionStatus
from ..utils.datetime import to_naive_utc, utcnow
from . import transaction_state
from .errors import ConflictingUpdate, IllegalTransition

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "expired"


def expire_overdue_transactions(session: Session, *, current_time: datetime | None = None) -> dict[str, int]:
    """Fail every pending/processing transaction whose ``expired_at`` has passed.

    Each transaction is committed on its own so one lost race does not undo the
    rest of the sweep. Rows a concurrent webhook or admin action already moved
    are skipped. Returns summary statistics useful for logging/testing.
    """

    now = to_naive_utc(current_time) if current_time else utcnow()
    summary = {
        "transactions_checked": 0,
        "transactions_expired": 0,
        "transactions_skipped": 0,
    }

    overdue_ids = session.execute(
        select(Transaction.id)
        .where(
            Transaction.status.in_([TransactionStatus.PENDING, TransactionStatus.PROCESSING]),
            Transaction.expired_at.is_not(None),
            Transaction.expired_at < now,
        )
        .order_by(Transaction.id)
    ).scalars().all()

    for transaction_id in overdue_ids:
        summary["transactions_checked"] += 1
        try:
            transaction = transaction_state.transition(
                session,
                transaction_id,
                TransactionStatus.FAILED,
                EXPIRED_MESSAGE,
                metadata={"expired_at": now.isoformat()},
            )
            if transaction.payment_status == PaymentStatus.PENDING:
                transaction_state.update_payment_status(session, transaction_id, PaymentStatus.EXPIRED)
            session.commit()
        except (IllegalTransition, ConflictingUpdate) as exc:
            session.rollback()
            summary["transactions_skipped"] += 1
            logger.info("expiry skipped transaction %s: %s", transaction_id, exc.detail)
            continue
        summary["transactions_expired"] += 1

    return summary
