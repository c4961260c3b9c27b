"""Voucher, voucher scope and voucher usage models."""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class VoucherScope(str, enum.Enum):
    """Which purchases a voucher applies to."""

    ALL = "all"
    CATEGORY = "category"
    PRODUCT = "product"


class VoucherStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class Voucher(Base):
    """Discount voucher with a global quota and a per-user limit."""

    __tablename__ = "vouchers"
    __table_args__ = (
        UniqueConstraint("code", name="vouchers_code_unique"),
        CheckConstraint("start_date <= end_date", name="vouchers_window_order"),
        CheckConstraint("quota >= 1", name="vouchers_quota_positive"),
        CheckConstraint("used_count >= 0", name="vouchers_used_count_positive"),
        CheckConstraint("used_count <= quota", name="vouchers_used_count_within_quota"),
        CheckConstraint("max_uses_per_user >= 1", name="vouchers_max_uses_per_user_positive"),
        CheckConstraint("value >= 0", name="vouchers_value_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False)
    discount_type = Column(SAEnum(DiscountType, name="voucher_discount_type"), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    description = Column(Text)
    scope = Column(SAEnum(VoucherScope, name="voucher_scope"), nullable=False, default=VoucherScope.ALL)
    min_transaction_amount = Column(Numeric(12, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(12, 2))
    quota = Column(Integer, nullable=False)
    used_count = Column(Integer, nullable=False, default=0)
    max_uses_per_user = Column(Integer, nullable=False, default=1)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(SAEnum(VoucherStatus, name="voucher_status"), nullable=False, default=VoucherStatus.ACTIVE)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    applications = relationship(
        "VoucherApplication",
        back_populates="voucher",
        cascade="all, delete-orphan",
    )
    usages = relationship("VoucherUsage", back_populates="voucher")


class VoucherApplication(Base):
    """Links a scoped voucher to the category or product it applies to."""

    __tablename__ = "voucher_applications"
    __table_args__ = (
        UniqueConstraint("voucher_id", "applicable_type", "applicable_id", name="voucher_applications_unique"),
        CheckConstraint("applicable_type IN ('category', 'product')", name="voucher_applications_type_check"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False, index=True)
    applicable_type = Column(String(20), nullable=False)
    applicable_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    voucher = relationship("Voucher", back_populates="applications")


class VoucherUsage(Base):
    """Immutable record of one redemption; the audit trail behind ``used_count``."""

    __tablename__ = "voucher_usages"
    __table_args__ = (
        UniqueConstraint("voucher_id", "user_id", "transaction_id", name="voucher_usages_unique"),
        CheckConstraint("discount_amount >= 0", name="voucher_usages_discount_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="RESTRICT"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="RESTRICT"), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False)
    used_at = Column(DateTime, default=utcnow, nullable=False)

    voucher = relationship("Voucher", back_populates="usages")
    user = relationship("User", back_populates="voucher_usages")
    transaction = relationship("Transaction", back_populates="voucher_usages")
