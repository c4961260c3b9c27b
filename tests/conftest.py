# tests/conftest.py
import os

os.environ.setdefault("TOPUP_DATABASE_URL", "sqlite://")
os.environ.setdefault("TOPUP_PAYMENT_GATEWAY_SERVER_KEY", "test-server-key")

from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from topup import models  # noqa: F401  registers every table on Base.metadata
from topup.core.database import Base
from topup.models import (
    AdminUser,
    Category,
    DiscountType,
    Product,
    ProductStatus,
    Transaction,
    User,
    Voucher,
    VoucherApplication,
    VoucherScope,
    VoucherStatus,
)
from topup.services import transaction_state
from topup.utils.datetime import utc_today

# In-memory SQLite shared through a single connection
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Session factory bound to the test engine, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture
def user(db_session):
    user = User(name="Budi", phone="081234567890")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other_user(db_session):
    user = User(name="Sari", phone="081298765432")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session):
    admin = AdminUser(username="ops", name="Ops Admin")
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture
def category(db_session):
    category = Category(name="Mobile Legends", slug="mobile-legends")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def other_category(db_session):
    category = Category(name="Free Fire", slug="free-fire")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def product(db_session, category):
    product = Product(
        category_id=category.id,
        name="86 Diamonds",
        slug="ml-86-diamonds",
        price=Decimal("20000"),
        status=ProductStatus.ACTIVE,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def instant_product(db_session, category):
    product = Product(
        category_id=category.id,
        name="Weekly Pass",
        slug="ml-weekly-pass",
        price=Decimal("30000"),
        status=ProductStatus.ACTIVE,
        instant_fulfillment=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def make_voucher(db_session):
    """Factory for vouchers valid from yesterday for a month unless overridden."""

    def _make(code="HEMAT10", *, targets=(), **overrides):
        today = utc_today()
        values = dict(
            code=code,
            discount_type=DiscountType.FIXED,
            value=Decimal("2000"),
            scope=VoucherScope.ALL,
            min_transaction_amount=Decimal("0"),
            max_discount_amount=None,
            quota=10,
            used_count=0,
            max_uses_per_user=1,
            start_date=today - timedelta(days=1),
            end_date=today + timedelta(days=30),
            status=VoucherStatus.ACTIVE,
        )
        values.update(overrides)
        voucher = Voucher(**values)
        for target_id in targets:
            voucher.applications.append(
                VoucherApplication(applicable_type=VoucherScope(values["scope"]).value, applicable_id=target_id)
            )
        db_session.add(voucher)
        db_session.commit()
        return voucher

    return _make


@pytest.fixture
def make_transaction(db_session, user):
    """Factory opening a pending transaction through the state machine."""

    def _make(product, *, expires_at=None, owner=None):
        price = Decimal(str(product.price))
        transaction = transaction_state.open_transaction(
            db_session,
            Transaction(
                user_id=(owner or user).id,
                product_id=product.id,
                game_account_data={"game_account": "123456789", "game_zone": "2001"},
                product_price=price,
                payment_fee=Decimal("0"),
                voucher_discount=Decimal("0"),
                total_amount=price,
                payment_method="gopay",
                whatsapp="081234567890",
            ),
            expires_at=expires_at,
        )
        db_session.commit()
        return transaction

    return _make


@pytest.fixture
def payment_gateway():
    gateway = MagicMock()
    gateway.create_payment_request.return_value = "https://pay.example.test/snap/abc123"
    return gateway


@pytest.fixture
def messenger():
    return MagicMock()
