"""Top-up transaction and its status audit log."""

import enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
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


class TransactionStatus(str, enum.Enum):
    """Processing status, driven only through the transaction state machine."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment-gateway side status, tracked independently of processing."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class Transaction(Base):
    """A customer's top-up purchase.

    ``game_account_data`` is a snapshot taken at creation so later edits to the
    user's saved game account don't rewrite history.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("transaction_code", name="transactions_code_unique"),
        CheckConstraint("total_amount >= 0", name="transactions_total_positive"),
        CheckConstraint(
            "total_amount = product_price + payment_fee - voucher_discount",
            name="transactions_total_matches_parts",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_code = Column(String(20), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    game_account_data = Column(JSON, nullable=False)

    product_price = Column(Numeric(12, 2), nullable=False)
    payment_fee = Column(Numeric(12, 2), nullable=False, default=0)
    voucher_discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String(50), nullable=False)
    payment_status = Column(SAEnum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.PENDING)
    payment_reference = Column(String(100))
    payment_url = Column(Text)

    whatsapp = Column(String(15), nullable=False)

    status = Column(SAEnum(TransactionStatus, name="transaction_status"), nullable=False, default=TransactionStatus.PENDING, index=True)
    processed_at = Column(DateTime)
    completed_at = Column(DateTime)
    expired_at = Column(DateTime)

    user_agent = Column(Text)
    ip_address = Column(String(45))

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="transactions")
    product = relationship("Product", back_populates="transactions")
    logs = relationship("TransactionLog", back_populates="transaction", order_by="TransactionLog.id")
    voucher_usages = relationship("VoucherUsage", back_populates="transaction")


class TransactionLog(Base):
    """Append-only status history; one row per creation and per status change."""

    __tablename__ = "transaction_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id", ondelete="RESTRICT"), nullable=False, index=True)
    status_from = Column(SAEnum(TransactionStatus, name="transaction_status"))
    status_to = Column(SAEnum(TransactionStatus, name="transaction_status"), nullable=False)
    message = Column(Text)
    log_metadata = Column("metadata", JSON)
    created_by_admin = Column(Integer, ForeignKey("admin_users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    transaction = relationship("Transaction", back_populates="logs")
    admin = relationship("AdminUser")
