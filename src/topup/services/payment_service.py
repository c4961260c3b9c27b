"""Payment-gateway webhook handling."""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import PaymentStatus, Transaction
from ..utils.money import to_whole_units
from . import transaction_state
from .errors import ValidationFailed
from .transaction_service import get_transaction_by_code

logger = logging.getLogger(__name__)

GATEWAY_STATUSES: dict[str, PaymentStatus] = {
    "capture": PaymentStatus.PAID,
    "settlement": PaymentStatus.PAID,
    "pending": PaymentStatus.PENDING,
    "deny": PaymentStatus.FAILED,
    "cancel": PaymentStatus.FAILED,
    "failure": PaymentStatus.FAILED,
    "expire": PaymentStatus.EXPIRED,
    "refund": PaymentStatus.REFUNDED,
    "partial_refund": PaymentStatus.REFUNDED,
}


def map_gateway_status(transaction_status: str, fraud_status: Optional[str] = None) -> PaymentStatus:
    """Translate a gateway notification status into our payment status."""

    normalized = (transaction_status or "").strip().lower()
    fraud = (fraud_status or "").strip().lower()
    status = GATEWAY_STATUSES.get(normalized)
    if status is None:
        raise ValidationFailed(
            f"Unknown gateway status '{transaction_status}'.", reason="unknown_gateway_status"
        )
    if normalized == "capture" and fraud == "challenge":
        return PaymentStatus.PENDING
    if fraud == "deny":
        return PaymentStatus.FAILED
    return status


def handle_notification(session: Session, payload: dict[str, Any], *, payment_gateway: Any) -> Transaction:
    """Apply a gateway notification to the matching transaction.

    The signature is checked before anything is read or written, and the
    notified amount must match the amount the gateway was asked to charge
    (the stored total in whole currency units).
    """

    order_id = payload.get("order_id")
    status_code = str(payload.get("status_code", ""))
    gross_amount = str(payload.get("gross_amount", ""))
    if not order_id:
        raise ValidationFailed("Notification is missing order_id.", reason="invalid_notification")

    if not payment_gateway.verify_signature(order_id, status_code, gross_amount, payload.get("signature_key", "")):
        logger.warning("rejected payment notification for %s: bad signature", order_id)
        raise ValidationFailed("Invalid notification signature.", reason="invalid_signature", status_code=401)

    payment_status = map_gateway_status(payload.get("transaction_status", ""), payload.get("fraud_status"))
    transaction = get_transaction_by_code(session, order_id)

    try:
        notified_amount = Decimal(gross_amount)
    except InvalidOperation as exc:
        raise ValidationFailed("Notification amount is malformed.", reason="invalid_notification") from exc
    expected_amount = to_whole_units(transaction.total_amount)
    if notified_amount != expected_amount:
        logger.warning(
            "amount mismatch for %s: notified %s, expected %s", order_id, gross_amount, expected_amount
        )
        raise ValidationFailed("Notification amount does not match the transaction.", reason="amount_mismatch")

    logger.info("payment notification for %s: %s", order_id, payment_status.value)
    return transaction_state.update_payment_status(
        session,
        transaction.id,
        payment_status,
        reference=payload.get("transaction_id"),
        metadata={
            "gateway_status": payload.get("transaction_status"),
            "payment_type": payload.get("payment_type"),
        },
    )
