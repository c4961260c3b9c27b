from datetime import timedelta
from decimal import Decimal

import pytest

from topup.models import DiscountType, Voucher, VoucherScope, VoucherStatus
from topup.services import transaction_service, voucher_evaluator
from topup.services.errors import InvalidState, NotFound, QuotaExceeded, UserLimitExceeded
from topup.utils.datetime import utc_today


def _voucher(**kwargs):
    values = dict(code="X", discount_type=DiscountType.PERCENTAGE, value=Decimal("10"), max_discount_amount=None)
    values.update(kwargs)
    return Voucher(**values)


def test_percentage_discount_without_cap():
    voucher = _voucher(value=Decimal("10"))
    assert voucher_evaluator.compute_discount(voucher, Decimal("100000")) == Decimal("10000.00")


def test_percentage_discount_is_capped():
    voucher = _voucher(value=Decimal("10"), max_discount_amount=Decimal("5000"))
    assert voucher_evaluator.compute_discount(voucher, Decimal("100000")) == Decimal("5000.00")


def test_fixed_discount_never_exceeds_amount():
    voucher = _voucher(discount_type=DiscountType.FIXED, value=Decimal("20000"))
    assert voucher_evaluator.compute_discount(voucher, Decimal("15000")) == Decimal("15000.00")


def test_fixed_discount_below_amount():
    voucher = _voucher(discount_type=DiscountType.FIXED, value=Decimal("2000"))
    assert voucher_evaluator.compute_discount(voucher, Decimal("20000")) == Decimal("2000.00")


def test_valid_voucher_returns_discount(db_session, user, product, make_voucher):
    make_voucher("HEMAT10", discount_type=DiscountType.PERCENTAGE, value=Decimal("10"))

    result = voucher_evaluator.evaluate(
        db_session,
        "hemat10",
        user_id=user.id,
        product_id=product.id,
        category_id=product.category_id,
        amount=Decimal("20000"),
    )

    assert result.valid
    assert result.reason is None
    assert result.discount_amount == Decimal("2000.00")


def test_unknown_code(db_session, user, product):
    result = voucher_evaluator.evaluate_for_product(db_session, "NOPE", user_id=user.id, product_id=product.id)

    assert not result.valid
    assert result.reason == voucher_evaluator.VOUCHER_NOT_FOUND
    assert result.discount_amount == Decimal("0.00")
    with pytest.raises(NotFound):
        result.raise_for_reason()


def test_inactive_voucher(db_session, user, product, make_voucher):
    make_voucher(status=VoucherStatus.INACTIVE)

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.VOUCHER_NOT_ACTIVE
    with pytest.raises(InvalidState):
        result.raise_for_reason()


def test_expired_voucher_is_rejected_even_if_marked_active(db_session, user, product, make_voucher):
    today = utc_today()
    make_voucher(start_date=today - timedelta(days=10), end_date=today - timedelta(days=1))

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.VOUCHER_EXPIRED


def test_end_date_is_inclusive(db_session, user, product, make_voucher):
    today = utc_today()
    make_voucher(start_date=today - timedelta(days=3), end_date=today)

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.valid


def test_not_started_voucher(db_session, user, product, make_voucher):
    today = utc_today()
    make_voucher(start_date=today + timedelta(days=2), end_date=today + timedelta(days=9))

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.VOUCHER_NOT_STARTED


def test_minimum_amount(db_session, user, product, make_voucher):
    make_voucher(min_transaction_amount=Decimal("50000"))

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.MIN_AMOUNT_NOT_MET
    assert "minimum" in result.message


def test_category_scope_mismatch(db_session, user, product, other_category, make_voucher):
    make_voucher(scope=VoucherScope.CATEGORY, targets=[other_category.id])

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert not result.valid
    assert result.reason == voucher_evaluator.SCOPE_MISMATCH


def test_category_scope_match(db_session, user, product, category, make_voucher):
    make_voucher(scope=VoucherScope.CATEGORY, targets=[category.id])

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.valid


def test_product_scope(db_session, user, product, instant_product, make_voucher):
    make_voucher(scope=VoucherScope.PRODUCT, targets=[instant_product.id])

    miss = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)
    hit = voucher_evaluator.evaluate_for_product(
        db_session, "HEMAT10", user_id=user.id, product_id=instant_product.id
    )

    assert miss.reason == voucher_evaluator.SCOPE_MISMATCH
    assert hit.valid


def test_exhausted_quota(db_session, user, product, make_voucher):
    make_voucher(quota=5, used_count=5)

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.QUOTA_EXHAUSTED
    with pytest.raises(QuotaExceeded):
        result.raise_for_reason()


def test_user_limit(db_session, user, product, make_voucher):
    make_voucher(max_uses_per_user=1)
    transaction_service.create_transaction(
        db_session,
        user_id=user.id,
        product_id=product.id,
        game_account={"game_account": "123456789"},
        payment_method="gopay",
        whatsapp="081234567890",
        voucher_code="HEMAT10",
    )

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.USER_LIMIT_REACHED
    with pytest.raises(UserLimitExceeded):
        result.raise_for_reason()


def test_first_failing_check_wins(db_session, user, product, other_category, make_voucher):
    # below minimum, wrong category and out of quota at once
    make_voucher(
        min_transaction_amount=Decimal("50000"),
        scope=VoucherScope.CATEGORY,
        targets=[other_category.id],
        quota=1,
        used_count=1,
    )

    result = voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)

    assert result.reason == voucher_evaluator.MIN_AMOUNT_NOT_MET


def test_evaluation_does_not_write(db_session, user, product, make_voucher):
    voucher = make_voucher()

    voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=product.id)
    db_session.commit()
    db_session.refresh(voucher)

    assert voucher.used_count == 0
    assert voucher.usages == []


def test_unknown_product(db_session, user):
    with pytest.raises(NotFound):
        voucher_evaluator.evaluate_for_product(db_session, "HEMAT10", user_id=user.id, product_id=999)
