"""SQLAlchemy models for the top-up service."""

from .catalog import Category, CategoryStatus, Product, ProductStatus
from .transaction import PaymentStatus, Transaction, TransactionLog, TransactionStatus
from .user import AdminUser, GameAccount, User
from .voucher import DiscountType, Voucher, VoucherApplication, VoucherScope, VoucherStatus, VoucherUsage

__all__ = [
    "AdminUser",
    "Category",
    "CategoryStatus",
    "DiscountType",
    "GameAccount",
    "PaymentStatus",
    "Product",
    "ProductStatus",
    "Transaction",
    "TransactionLog",
    "TransactionStatus",
    "User",
    "Voucher",
    "VoucherApplication",
    "VoucherScope",
    "VoucherStatus",
    "VoucherUsage",
]
