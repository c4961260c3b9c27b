"""Voucher quota enforcement.

Reservations lock the voucher row and claim a unit with a conditional update,
so concurrent requests for the same voucher cannot both pass the quota check.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import Voucher, VoucherStatus, VoucherUsage
from ..utils.datetime import utc_today, utcnow
from ..utils.money import to_money
from .errors import InvalidState, NotFound, QuotaExceeded, UserLimitExceeded
from .voucher_evaluator import (
    VOUCHER_EXPIRED,
    VOUCHER_NOT_ACTIVE,
    effective_status,
    error_for_reason,
    user_usage_count,
    window_reason,
)

logger = logging.getLogger(__name__)


def _lock_voucher(session: Session, voucher_id: int) -> Voucher:
    stmt = select(Voucher).where(Voucher.id == voucher_id).with_for_update()
    voucher = session.execute(stmt).scalar_one_or_none()
    if voucher is None:
        raise NotFound(f"Voucher {voucher_id} not found", reason="voucher_not_found")
    return voucher


def _claim_unit(session: Session, voucher: Voucher) -> bool:
    stmt = (
        update(Voucher)
        .where(
            Voucher.id == voucher.id,
            Voucher.status == VoucherStatus.ACTIVE,
            Voucher.used_count < Voucher.quota,
        )
        .values(used_count=Voucher.used_count + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return session.execute(stmt).rowcount == 1


def reserve_usage(
    session: Session,
    *,
    voucher_id: int,
    user_id: int,
    transaction_id: int,
    discount_amount: Decimal,
    today: Optional[date] = None,
) -> VoucherUsage:
    """Consume one unit of a voucher for a user and transaction.

    Must run inside the caller's unit of work; on any error the caller rolls
    back and neither the usage row nor the counter increment survive.
    """

    today = today or utc_today()
    voucher = _lock_voucher(session, voucher_id)

    status = effective_status(voucher, today)
    if status == VoucherStatus.EXPIRED:
        raise error_for_reason(VOUCHER_EXPIRED)
    if status != VoucherStatus.ACTIVE:
        raise error_for_reason(VOUCHER_NOT_ACTIVE)
    reason = window_reason(voucher, today)
    if reason:
        raise error_for_reason(reason)

    if not _claim_unit(session, voucher):
        session.refresh(voucher)
        if voucher.status != VoucherStatus.ACTIVE and voucher.used_count < voucher.quota:
            raise error_for_reason(VOUCHER_NOT_ACTIVE)
        logger.info("voucher %s quota exhausted (%s/%s)", voucher.code, voucher.used_count, voucher.quota)
        raise QuotaExceeded("This voucher has reached its usage limit.", reason="quota_exceeded")

    used_by_user = user_usage_count(session, voucher.id, user_id)
    if used_by_user >= voucher.max_uses_per_user:
        raise UserLimitExceeded(
            "You have already used this voucher the maximum number of times.",
            reason="user_limit_exceeded",
        )

    usage = VoucherUsage(
        voucher_id=voucher.id,
        user_id=user_id,
        transaction_id=transaction_id,
        discount_amount=to_money(discount_amount),
        used_at=utcnow(),
    )
    session.add(usage)
    try:
        session.flush()
    except IntegrityError as exc:
        raise InvalidState(
            "Voucher has already been applied to this transaction.",
            reason="voucher_already_applied",
        ) from exc

    session.refresh(voucher)
    if voucher.used_count >= voucher.quota:
        voucher.status = VoucherStatus.INACTIVE
        session.flush()
        logger.info("voucher %s reached its quota and was deactivated", voucher.code)

    return usage
