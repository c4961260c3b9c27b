"""Voucher administration: create, edit, deactivate and query."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..models import DiscountType, Voucher, VoucherApplication, VoucherScope, VoucherStatus, VoucherUsage
from ..utils.datetime import utc_today
from ..utils.money import to_money
from .errors import NotFound, ValidationFailed
from .voucher_evaluator import effective_status, normalize_code

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "discount_type",
    "value",
    "description",
    "min_transaction_amount",
    "max_discount_amount",
    "quota",
    "max_uses_per_user",
    "start_date",
    "end_date",
)


def _validate(voucher: Voucher, target_ids: Optional[Sequence[int]]) -> None:
    if voucher.start_date > voucher.end_date:
        raise ValidationFailed("Start date must not be after end date.", reason="invalid_validity_window")
    if voucher.quota is None or voucher.quota < 1:
        raise ValidationFailed("Quota must be at least 1.", reason="invalid_quota")
    if voucher.used_count and voucher.quota < voucher.used_count:
        raise ValidationFailed("Quota cannot be lower than the number of uses.", reason="quota_below_usage")
    if voucher.max_uses_per_user is None or voucher.max_uses_per_user < 1:
        raise ValidationFailed("Max uses per user must be at least 1.", reason="invalid_max_uses_per_user")
    value = Decimal(str(voucher.value))
    if value <= 0:
        raise ValidationFailed("Voucher value must be positive.", reason="invalid_value")
    if DiscountType(voucher.discount_type) == DiscountType.PERCENTAGE and value > 100:
        raise ValidationFailed("Percentage value cannot exceed 100.", reason="invalid_value")
    if VoucherScope(voucher.scope) != VoucherScope.ALL and target_ids is not None and not target_ids:
        raise ValidationFailed("Scoped vouchers need at least one target.", reason="missing_scope_targets")


def sync_status(voucher: Voucher, today: Optional[date] = None) -> Voucher:
    """Persist lazy expiry on the loaded voucher."""

    status = effective_status(voucher, today or utc_today())
    if status != voucher.status:
        logger.info("voucher %s status %s -> %s", voucher.code, voucher.status, status)
        voucher.status = status
    return voucher


def _replace_targets(voucher: Voucher, target_ids: Iterable[int]) -> None:
    scope = VoucherScope(voucher.scope)
    wanted = [] if scope == VoucherScope.ALL else list(dict.fromkeys(target_ids))
    kept = set()
    # rows are diffed, not rebuilt: the unit of work inserts before it deletes
    for application in list(voucher.applications):
        if application.applicable_type == scope.value and application.applicable_id in wanted:
            kept.add(application.applicable_id)
        else:
            voucher.applications.remove(application)
    for target_id in wanted:
        if target_id not in kept:
            voucher.applications.append(
                VoucherApplication(applicable_type=scope.value, applicable_id=target_id)
            )


def _code_taken(session: Session, code: str) -> bool:
    stmt = select(Voucher.id).where(Voucher.code == code)
    return session.execute(stmt).scalar_one_or_none() is not None


def create_voucher(
    session: Session,
    *,
    code: str,
    discount_type: DiscountType,
    value: Decimal,
    quota: int,
    start_date: date,
    end_date: date,
    scope: VoucherScope = VoucherScope.ALL,
    target_ids: Sequence[int] = (),
    description: Optional[str] = None,
    min_transaction_amount: Decimal = Decimal("0"),
    max_discount_amount: Optional[Decimal] = None,
    max_uses_per_user: int = 1,
) -> Voucher:
    """Create a voucher; codes are stored uppercase and must be unique."""

    code = normalize_code(code)
    if len(code) < 3:
        raise ValidationFailed("Voucher code must be at least 3 characters.", reason="invalid_code")
    if _code_taken(session, code):
        raise ValidationFailed(f"Voucher code {code} already exists.", reason="voucher_code_taken")

    voucher = Voucher(
        code=code,
        discount_type=DiscountType(discount_type),
        value=to_money(value),
        description=description,
        scope=VoucherScope(scope),
        min_transaction_amount=to_money(min_transaction_amount or 0),
        max_discount_amount=to_money(max_discount_amount) if max_discount_amount is not None else None,
        quota=quota,
        used_count=0,
        max_uses_per_user=max_uses_per_user,
        start_date=start_date,
        end_date=end_date,
        status=VoucherStatus.ACTIVE,
    )
    _validate(voucher, list(target_ids))
    _replace_targets(voucher, target_ids)
    sync_status(voucher)
    session.add(voucher)
    try:
        session.flush()
    except IntegrityError as exc:
        # a concurrent create slipped past the lookup above
        raise ValidationFailed(f"Voucher code {code} already exists.", reason="voucher_code_taken") from exc
    logger.info("voucher %s created", voucher.code)
    return voucher


def get_voucher_by_code(session: Session, code: str) -> Voucher:
    stmt = (
        select(Voucher)
        .options(selectinload(Voucher.applications))
        .where(Voucher.code == normalize_code(code))
    )
    voucher = session.execute(stmt).scalar_one_or_none()
    if voucher is None:
        raise NotFound(f"Voucher {normalize_code(code)} not found", reason="voucher_not_found")
    sync_status(voucher)
    session.flush()
    return voucher


def update_voucher(
    session: Session,
    code: str,
    *,
    scope: Optional[VoucherScope] = None,
    target_ids: Optional[Sequence[int]] = None,
    status: Optional[VoucherStatus] = None,
    **changes,
) -> Voucher:
    """Apply admin edits.

    ``used_count`` is owned by the quota ledger and cannot be edited here. An
    expired voucher cannot be re-activated without moving its end date.
    """

    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}", reason="field_not_editable")

    voucher = get_voucher_by_code(session, code)
    for field, value in changes.items():
        if value is None and field not in ("description", "max_discount_amount"):
            continue
        setattr(voucher, field, value)
    if scope is not None:
        voucher.scope = VoucherScope(scope)

    if scope is not None or target_ids is not None:
        targets = list(target_ids) if target_ids is not None else [a.applicable_id for a in voucher.applications]
        _validate(voucher, targets)
        _replace_targets(voucher, targets)
    else:
        _validate(voucher, None)

    if status is not None:
        status = VoucherStatus(status)
        if status == VoucherStatus.ACTIVE and voucher.used_count >= voucher.quota:
            raise ValidationFailed("Voucher quota is exhausted; raise the quota first.", reason="quota_below_usage")
        voucher.status = status
    sync_status(voucher)
    session.flush()
    logger.info("voucher %s updated", voucher.code)
    return voucher


def deactivate_voucher(session: Session, code: str) -> Voucher:
    """Soft delete: vouchers are never removed, only made inactive."""

    voucher = get_voucher_by_code(session, code)
    if voucher.status == VoucherStatus.ACTIVE:
        voucher.status = VoucherStatus.INACTIVE
        session.flush()
        logger.info("voucher %s deactivated", voucher.code)
    return voucher


def list_vouchers(
    session: Session,
    *,
    status: Optional[VoucherStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[Voucher]:
    """List vouchers, newest first, with expiry applied before filtering."""

    today = utc_today()
    expired = session.execute(
        select(Voucher).where(Voucher.end_date < today, Voucher.status != VoucherStatus.EXPIRED)
    ).scalars().all()
    for voucher in expired:
        sync_status(voucher, today)
    if expired:
        session.flush()

    stmt = (
        select(Voucher)
        .options(selectinload(Voucher.applications))
        .order_by(Voucher.created_at.desc(), Voucher.id.desc())
        .offset(offset)
        .limit(limit)
    )
    if status is not None:
        stmt = stmt.where(Voucher.status == VoucherStatus(status))
    return session.execute(stmt).scalars().all()


def usage_stats(session: Session, code: str) -> dict:
    """Summarize how a voucher has been used, overall and per user."""

    voucher = get_voucher_by_code(session, code)
    rows = session.execute(
        select(
            VoucherUsage.user_id,
            func.count(VoucherUsage.id),
            func.coalesce(func.sum(VoucherUsage.discount_amount), 0),
        )
        .where(VoucherUsage.voucher_id == voucher.id)
        .group_by(VoucherUsage.user_id)
        .order_by(VoucherUsage.user_id)
    ).all()

    per_user = [
        {"user_id": user_id, "uses": uses, "total_discount": to_money(discount)}
        for user_id, uses, discount in rows
    ]
    total_discount = to_money(sum((entry["total_discount"] for entry in per_user), Decimal("0")))
    return {
        "code": voucher.code,
        "status": voucher.status,
        "quota": voucher.quota,
        "used_count": voucher.used_count,
        "remaining": max(voucher.quota - voucher.used_count, 0),
        "total_discount": total_discount,
        "unique_users": len(per_user),
        "per_user": per_user,
    }
