"""Transaction creation and lookups."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from ..core.config import get_settings
from ..models import (
    GameAccount,
    PaymentStatus,
    Product,
    ProductStatus,
    Transaction,
    TransactionLog,
    TransactionStatus,
    User,
)
from ..utils.datetime import to_naive_utc
from ..utils.money import to_money, to_whole_units
from . import game_account_service, quota_ledger, transaction_state, voucher_evaluator
from .errors import DependencyFailure, InvalidState, NotFound, ValidationFailed
from .unit_of_work import run_atomic

logger = logging.getLogger(__name__)


def snapshot_from_game_account(account: GameAccount) -> dict[str, str]:
    """Copy a saved game account into the shape stored on transactions."""

    snapshot = {"game_account": account.game_id}
    if account.zone_id:
        snapshot["game_zone"] = account.zone_id
    if account.server:
        snapshot["game_server"] = account.server
    if account.nickname:
        snapshot["nickname"] = account.nickname
    return snapshot


def payment_fee_for(method: str) -> Decimal:
    fees = get_settings().payment_fees
    if method not in fees:
        raise ValidationFailed(
            f"Unsupported payment method '{method}'.", reason="unsupported_payment_method"
        )
    return to_money(fees[method])


def _load_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found", reason="product_not_found")
    if product.status != ProductStatus.ACTIVE:
        raise InvalidState("Product is not available.", reason="product_inactive")
    return product


def _ensure_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found", reason="user_not_found")
    return user


def _clean_snapshot(game_account: dict[str, Any]) -> dict[str, str]:
    snapshot = {key: str(value) for key, value in dict(game_account).items() if value not in (None, "")}
    if not snapshot.get("game_account"):
        raise ValidationFailed("Game account id is required.", reason="game_account_required")
    return snapshot


def _dispatch_collaborators(
    session: Session,
    transaction: Transaction,
    payment_gateway: Any,
    messenger: Any,
) -> list[str]:
    degraded: list[str] = []

    if payment_gateway is not None:
        try:
            payment_url = payment_gateway.create_payment_request(
                transaction.transaction_code, transaction.total_amount, transaction.payment_method
            )
        except DependencyFailure as exc:
            logger.warning(
                "payment url pending for %s: %s", transaction.transaction_code, exc.detail
            )
            degraded.append("payment_url")
        except Exception:
            # Already committed; any gateway fault only degrades the response.
            logger.exception("payment url request crashed for %s", transaction.transaction_code)
            degraded.append("payment_url")
        else:
            transaction.payment_url = payment_url
            session.commit()
            session.refresh(transaction)

    if messenger is not None:
        message = (
            f"Order {transaction.transaction_code} received. "
            f"Total: {transaction.total_amount}. "
            + (f"Pay here: {transaction.payment_url}" if transaction.payment_url else "Payment link will follow.")
        )
        try:
            messenger.notify(transaction.whatsapp, message)
        except DependencyFailure as exc:
            logger.warning(
                "notification for %s not delivered: %s", transaction.transaction_code, exc.detail
            )
            degraded.append("notification")
        except Exception:
            logger.exception("notification crashed for %s", transaction.transaction_code)
            degraded.append("notification")

    return degraded


def create_transaction(
    session: Session,
    *,
    user_id: int,
    product_id: int,
    game_account: Optional[dict[str, Any]] = None,
    game_account_id: Optional[int] = None,
    payment_method: str,
    whatsapp: str,
    voucher_code: Optional[str] = None,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    payment_gateway: Any = None,
    messenger: Any = None,
) -> tuple[Transaction, list[str]]:
    """Create a pending transaction, reserving the voucher if one is given.

    Voucher reservation and the transaction insert commit together. The
    payment URL and the customer notification are requested afterwards; their
    failures are returned in the ``degraded`` list instead of undoing the
    transaction.

    The game account is either given inline or picked from the user's saved
    accounts by ``game_account_id``; both end up as the same snapshot.
    """

    payment_fee = payment_fee_for(payment_method)
    _ensure_user(session, user_id)
    if game_account_id is not None:
        account = game_account_service.get_game_account(session, game_account_id, user_id=user_id)
        snapshot = snapshot_from_game_account(account)
    elif game_account:
        snapshot = _clean_snapshot(game_account)
    else:
        raise ValidationFailed("Game account id is required.", reason="game_account_required")
    product = _load_product(session, product_id)
    price = to_money(product.price)

    evaluation = None
    if voucher_code:
        evaluation = voucher_evaluator.evaluate(
            session,
            voucher_code,
            user_id=user_id,
            product_id=product.id,
            category_id=product.category_id,
            amount=price,
        )
        evaluation.raise_for_reason()

    # Whole units, matching the amount the gateway charges.
    discount = to_money(min(to_whole_units(evaluation.discount_amount), price)) if evaluation else Decimal("0.00")
    total = price + payment_fee - discount
    if total < 0:
        raise ValidationFailed("Total amount cannot be negative.", reason="negative_total")

    voucher_id = evaluation.voucher.id if evaluation else None
    product_id = product.id

    def _work() -> Transaction:
        transaction = transaction_state.open_transaction(
            session,
            Transaction(
                user_id=user_id,
                product_id=product_id,
                game_account_data=snapshot,
                product_price=price,
                payment_fee=payment_fee,
                voucher_discount=discount,
                total_amount=total,
                payment_method=payment_method,
                whatsapp=whatsapp,
                user_agent=user_agent,
                ip_address=ip_address,
            ),
        )
        if voucher_id is not None:
            quota_ledger.reserve_usage(
                session,
                voucher_id=voucher_id,
                user_id=user_id,
                transaction_id=transaction.id,
                discount_amount=discount,
            )
        return transaction

    transaction = run_atomic(session, _work)
    session.refresh(transaction)
    logger.info(
        "transaction %s created for user %s (total %s)", transaction.transaction_code, user_id, transaction.total_amount
    )

    degraded = _dispatch_collaborators(session, transaction, payment_gateway, messenger)
    return transaction, degraded


def attach_payment_url(session: Session, transaction_code: str, payment_gateway: Any) -> Transaction:
    """Backfill the payment URL of a pending transaction created in degraded mode."""

    transaction = get_transaction_by_code(session, transaction_code)
    if transaction.status != TransactionStatus.PENDING:
        raise InvalidState("Only pending transactions can be paid.", reason="transaction_not_pending")
    if transaction.payment_url:
        return transaction
    transaction.payment_url = payment_gateway.create_payment_request(
        transaction.transaction_code, transaction.total_amount, transaction.payment_method
    )
    session.flush()
    return transaction


def get_transaction_by_code(session: Session, transaction_code: str) -> Transaction:
    stmt = (
        select(Transaction)
        .options(joinedload(Transaction.product))
        .where(Transaction.transaction_code == transaction_code.strip().upper())
    )
    transaction = session.execute(stmt).scalar_one_or_none()
    if transaction is None:
        raise NotFound(f"Transaction {transaction_code} not found", reason="transaction_not_found")
    return transaction


def list_user_transactions(
    session: Session,
    *,
    user_id: int,
    status: Optional[TransactionStatus] = None,
    limit: int = 20,
    offset: int = 0,
) -> Sequence[Transaction]:
    """Return a user's transactions, newest first."""

    stmt = (
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
    )
    if status is not None:
        stmt = stmt.where(Transaction.status == status)
    return session.execute(stmt).scalars().all()


def list_transactions(
    session: Session,
    *,
    status: Optional[TransactionStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    user_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[Transaction]:
    """Admin listing across all users, newest first.

    ``date_from`` is inclusive and ``date_to`` exclusive, both on ``created_at``.
    """

    stmt = (
        select(Transaction)
        .options(joinedload(Transaction.product))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
    )
    if status is not None:
        stmt = stmt.where(Transaction.status == TransactionStatus(status))
    if payment_status is not None:
        stmt = stmt.where(Transaction.payment_status == PaymentStatus(payment_status))
    if user_id is not None:
        stmt = stmt.where(Transaction.user_id == user_id)
    if date_from is not None:
        stmt = stmt.where(Transaction.created_at >= to_naive_utc(date_from))
    if date_to is not None:
        stmt = stmt.where(Transaction.created_at < to_naive_utc(date_to))
    return session.execute(stmt).scalars().all()


def cancel_transaction(
    session: Session,
    transaction_code: str,
    *,
    user_id: int,
    reason: Optional[str] = None,
) -> Transaction:
    """Let a customer cancel their own transaction while it is still pending.

    Other users' transactions are reported as not found. Orders already paid
    or being processed can only be cancelled by an admin.
    """

    transaction = get_transaction_by_code(session, transaction_code)
    if transaction.user_id != user_id:
        raise NotFound(f"Transaction {transaction_code} not found", reason="transaction_not_found")
    if TransactionStatus(transaction.status) != TransactionStatus.PENDING:
        raise InvalidState(
            "Only pending transactions can be cancelled.", reason="transaction_not_cancellable"
        )

    message = f"Cancelled by customer: {reason}" if reason else "Cancelled by customer"
    return transaction_state.transition(
        session, transaction.id, TransactionStatus.CANCELLED, message, metadata={"cancelled_by": "customer"}
    )


def list_transaction_logs(session: Session, transaction_id: int) -> Sequence[TransactionLog]:
    stmt = (
        select(TransactionLog)
        .where(TransactionLog.transaction_id == transaction_id)
        .order_by(TransactionLog.id.asc())
    )
    return session.execute(stmt).scalars().all()
