import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from topup.core.database import Base
from topup.models import DiscountType, User, Voucher, VoucherStatus, VoucherUsage
from topup.services import quota_ledger
from topup.services.errors import InvalidState, NotFound, QuotaExceeded, ServiceError, UserLimitExceeded
from topup.services.unit_of_work import run_atomic
from topup.utils.datetime import utc_today


def _usage_count(session, voucher_id):
    return session.execute(
        select(func.count(VoucherUsage.id)).where(VoucherUsage.voucher_id == voucher_id)
    ).scalar_one()


def test_reserve_increments_counter_and_records_usage(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(quota=3)
    transaction = make_transaction(product)

    usage = quota_ledger.reserve_usage(
        db_session,
        voucher_id=voucher.id,
        user_id=user.id,
        transaction_id=transaction.id,
        discount_amount=Decimal("2000"),
    )
    db_session.commit()
    db_session.refresh(voucher)

    assert voucher.used_count == 1
    assert voucher.status == VoucherStatus.ACTIVE
    assert usage.discount_amount == Decimal("2000.00")
    assert _usage_count(db_session, voucher.id) == voucher.used_count


def test_last_unit_deactivates_voucher(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(quota=1)
    transaction = make_transaction(product)

    quota_ledger.reserve_usage(
        db_session,
        voucher_id=voucher.id,
        user_id=user.id,
        transaction_id=transaction.id,
        discount_amount=Decimal("2000"),
    )
    db_session.commit()
    db_session.refresh(voucher)

    assert voucher.used_count == 1
    assert voucher.status == VoucherStatus.INACTIVE


def test_full_voucher_raises_quota_exceeded(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(quota=2, used_count=2)
    transaction = make_transaction(product)

    with pytest.raises(QuotaExceeded) as exc_info:
        quota_ledger.reserve_usage(
            db_session,
            voucher_id=voucher.id,
            user_id=user.id,
            transaction_id=transaction.id,
            discount_amount=Decimal("2000"),
        )
    db_session.rollback()
    db_session.refresh(voucher)

    assert exc_info.value.reason == "quota_exceeded"
    assert voucher.used_count == 2
    assert _usage_count(db_session, voucher.id) == 0


def test_user_limit_rolls_back_the_claim(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(quota=5, max_uses_per_user=1)
    first = make_transaction(product)
    second = make_transaction(product)

    quota_ledger.reserve_usage(
        db_session, voucher_id=voucher.id, user_id=user.id, transaction_id=first.id, discount_amount=Decimal("2000")
    )
    db_session.commit()

    with pytest.raises(UserLimitExceeded):
        quota_ledger.reserve_usage(
            db_session,
            voucher_id=voucher.id,
            user_id=user.id,
            transaction_id=second.id,
            discount_amount=Decimal("2000"),
        )
    db_session.rollback()
    db_session.refresh(voucher)

    assert voucher.used_count == 1
    assert _usage_count(db_session, voucher.id) == 1


def test_inactive_voucher_cannot_be_reserved(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(status=VoucherStatus.INACTIVE)
    transaction = make_transaction(product)

    with pytest.raises(InvalidState) as exc_info:
        quota_ledger.reserve_usage(
            db_session,
            voucher_id=voucher.id,
            user_id=user.id,
            transaction_id=transaction.id,
            discount_amount=Decimal("2000"),
        )

    assert exc_info.value.reason == "voucher_not_active"


def test_expired_voucher_cannot_be_reserved(db_session, user, product, make_voucher, make_transaction):
    today = utc_today()
    voucher = make_voucher(start_date=today - timedelta(days=5), end_date=today - timedelta(days=1))
    transaction = make_transaction(product)

    with pytest.raises(InvalidState) as exc_info:
        quota_ledger.reserve_usage(
            db_session,
            voucher_id=voucher.id,
            user_id=user.id,
            transaction_id=transaction.id,
            discount_amount=Decimal("2000"),
        )

    assert exc_info.value.reason == "voucher_expired"


def test_unknown_voucher(db_session, user, product, make_transaction):
    transaction = make_transaction(product)

    with pytest.raises(NotFound):
        quota_ledger.reserve_usage(
            db_session, voucher_id=404, user_id=user.id, transaction_id=transaction.id, discount_amount=Decimal("0")
        )


def test_same_transaction_cannot_use_voucher_twice(db_session, user, product, make_voucher, make_transaction):
    voucher = make_voucher(quota=5, max_uses_per_user=3)
    transaction = make_transaction(product)

    quota_ledger.reserve_usage(
        db_session,
        voucher_id=voucher.id,
        user_id=user.id,
        transaction_id=transaction.id,
        discount_amount=Decimal("2000"),
    )
    db_session.commit()

    with pytest.raises(InvalidState) as exc_info:
        quota_ledger.reserve_usage(
            db_session,
            voucher_id=voucher.id,
            user_id=user.id,
            transaction_id=transaction.id,
            discount_amount=Decimal("2000"),
        )
    db_session.rollback()
    db_session.refresh(voucher)

    assert exc_info.value.reason == "voucher_already_applied"
    assert voucher.used_count == 1


def test_concurrent_reservations_never_oversell(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    workers = 6
    today = utc_today()
    with Session() as setup:
        users = [User(name=f"user-{i}", phone=f"08100000000{i}") for i in range(workers)]
        setup.add_all(users)
        voucher = Voucher(
            code="LASTONE",
            discount_type=DiscountType.FIXED,
            value=Decimal("1000"),
            quota=1,
            used_count=0,
            max_uses_per_user=1,
            start_date=today - timedelta(days=1),
            end_date=today + timedelta(days=1),
            status=VoucherStatus.ACTIVE,
        )
        setup.add(voucher)
        setup.commit()
        voucher_id = voucher.id
        user_ids = [u.id for u in users]

    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt(index):
        session = Session()
        try:
            barrier.wait()
            run_atomic(
                session,
                lambda: quota_ledger.reserve_usage(
                    session,
                    voucher_id=voucher_id,
                    user_id=user_ids[index],
                    transaction_id=index + 1,
                    discount_amount=Decimal("1000"),
                ),
                attempts=5,
            )
            result = "ok"
        except ServiceError as exc:
            result = exc.reason or exc.code
        finally:
            session.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with Session() as check:
        stored = check.get(Voucher, voucher_id)
        assert outcomes.count("ok") == 1
        assert len(outcomes) == workers
        assert stored.used_count == 1
        assert _usage_count(check, voucher_id) == 1

    engine.dispose()
