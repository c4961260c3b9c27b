"""Voucher eligibility and discount computation.

Nothing in this module writes to the database. Callers that want to consume a
voucher must reserve it through :mod:`quota_ledger` inside the same unit of
work that creates the transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import DiscountType, Product, Voucher, VoucherApplication, VoucherScope, VoucherStatus, VoucherUsage
from ..utils.datetime import utc_today
from ..utils.money import Number, to_money
from .errors import InvalidState, NotFound, QuotaExceeded, ServiceError, UserLimitExceeded

VOUCHER_NOT_FOUND = "voucher_not_found"
VOUCHER_NOT_ACTIVE = "voucher_not_active"
VOUCHER_NOT_STARTED = "voucher_not_started"
VOUCHER_EXPIRED = "voucher_expired"
MIN_AMOUNT_NOT_MET = "min_amount_not_met"
SCOPE_MISMATCH = "scope_mismatch"
QUOTA_EXHAUSTED = "quota_exceeded"
USER_LIMIT_REACHED = "user_limit_exceeded"

_REASONS: dict[str, tuple[type[ServiceError], str]] = {
    VOUCHER_NOT_FOUND: (NotFound, "Voucher not found."),
    VOUCHER_NOT_ACTIVE: (InvalidState, "Voucher is not active."),
    VOUCHER_NOT_STARTED: (InvalidState, "Voucher is not valid yet."),
    VOUCHER_EXPIRED: (InvalidState, "Voucher has expired."),
    MIN_AMOUNT_NOT_MET: (InvalidState, "Purchase amount is below the voucher minimum."),
    SCOPE_MISMATCH: (InvalidState, "Voucher does not apply to this product."),
    QUOTA_EXHAUSTED: (QuotaExceeded, "This voucher has reached its usage limit."),
    USER_LIMIT_REACHED: (UserLimitExceeded, "You have already used this voucher the maximum number of times."),
}


def error_for_reason(reason: str) -> ServiceError:
    """Build the taxonomy error matching an evaluation reason."""

    error_cls, message = _REASONS[reason]
    return error_cls(message, reason=reason)


@dataclass
class VoucherEvaluation:
    """Outcome of evaluating a voucher against a purchase."""

    valid: bool
    discount_amount: Decimal
    reason: Optional[str] = None
    voucher: Optional[Voucher] = None

    @property
    def message(self) -> Optional[str]:
        return _REASONS[self.reason][1] if self.reason else None

    def raise_for_reason(self) -> None:
        if not self.valid:
            raise error_for_reason(self.reason)

    @classmethod
    def reject(cls, reason: str, voucher: Optional[Voucher] = None) -> "VoucherEvaluation":
        return cls(valid=False, discount_amount=Decimal("0.00"), reason=reason, voucher=voucher)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def effective_status(voucher: Voucher, today: Optional[date] = None) -> VoucherStatus:
    """Status with expiry applied; ``end_date`` is inclusive."""

    today = today or utc_today()
    if voucher.end_date < today:
        return VoucherStatus.EXPIRED
    return voucher.status


def window_reason(voucher: Voucher, today: date) -> Optional[str]:
    if today < voucher.start_date:
        return VOUCHER_NOT_STARTED
    if today > voucher.end_date:
        return VOUCHER_EXPIRED
    return None


def compute_discount(voucher: Voucher, amount: Number) -> Decimal:
    """Discount for ``amount``; never more than the amount itself."""

    amount = Decimal(str(amount))
    value = Decimal(str(voucher.value))
    if voucher.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / Decimal(100)
        if voucher.max_discount_amount is not None:
            discount = min(discount, Decimal(str(voucher.max_discount_amount)))
    else:
        discount = min(value, amount)
    return to_money(max(discount, Decimal(0)))


def scope_matches(session: Session, voucher: Voucher, *, product_id: Optional[int], category_id: Optional[int]) -> bool:
    scope = VoucherScope(voucher.scope)
    if scope == VoucherScope.ALL:
        return True
    target_id = category_id if scope == VoucherScope.CATEGORY else product_id
    if target_id is None:
        return False
    stmt = select(VoucherApplication.id).where(
        VoucherApplication.voucher_id == voucher.id,
        VoucherApplication.applicable_type == scope.value,
        VoucherApplication.applicable_id == target_id,
    )
    return session.execute(stmt.limit(1)).scalar_one_or_none() is not None


def user_usage_count(session: Session, voucher_id: int, user_id: int) -> int:
    stmt = select(func.count(VoucherUsage.id)).where(
        VoucherUsage.voucher_id == voucher_id,
        VoucherUsage.user_id == user_id,
    )
    return session.execute(stmt).scalar_one()


def evaluate(
    session: Session,
    code: str,
    *,
    user_id: int,
    product_id: Optional[int],
    category_id: Optional[int],
    amount: Number,
    today: Optional[date] = None,
) -> VoucherEvaluation:
    """Check a voucher code against a purchase and compute its discount.

    Checks run in a fixed order and the first failure wins: existence, status,
    validity window, minimum amount, scope, global quota, per-user limit.
    """

    today = today or utc_today()
    amount = to_money(amount)

    voucher = session.execute(
        select(Voucher).where(Voucher.code == normalize_code(code))
    ).scalar_one_or_none()
    if voucher is None:
        return VoucherEvaluation.reject(VOUCHER_NOT_FOUND)

    status = effective_status(voucher, today)
    if status == VoucherStatus.EXPIRED:
        return VoucherEvaluation.reject(VOUCHER_EXPIRED, voucher)
    if status != VoucherStatus.ACTIVE:
        return VoucherEvaluation.reject(VOUCHER_NOT_ACTIVE, voucher)

    reason = window_reason(voucher, today)
    if reason:
        return VoucherEvaluation.reject(reason, voucher)

    if amount < Decimal(str(voucher.min_transaction_amount or 0)):
        return VoucherEvaluation.reject(MIN_AMOUNT_NOT_MET, voucher)

    if not scope_matches(session, voucher, product_id=product_id, category_id=category_id):
        return VoucherEvaluation.reject(SCOPE_MISMATCH, voucher)

    if voucher.used_count >= voucher.quota:
        return VoucherEvaluation.reject(QUOTA_EXHAUSTED, voucher)

    if user_usage_count(session, voucher.id, user_id) >= voucher.max_uses_per_user:
        return VoucherEvaluation.reject(USER_LIMIT_REACHED, voucher)

    return VoucherEvaluation(valid=True, discount_amount=compute_discount(voucher, amount), voucher=voucher)


def evaluate_for_product(
    session: Session,
    code: str,
    *,
    user_id: int,
    product_id: int,
    amount: Optional[Number] = None,
) -> VoucherEvaluation:
    """Evaluate against a stored product, defaulting the amount to its price."""

    product = session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", reason="product_not_found")
    return evaluate(
        session,
        code,
        user_id=user_id,
        product_id=product.id,
        category_id=product.category_id,
        amount=product.price if amount is None else amount,
    )
