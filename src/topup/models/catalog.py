"""Catalog models."""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class CategoryStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProductStatus(str, enum.Enum):
    """Sellable state of a product."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"


class Category(Base):
    """Game or product family shown in the storefront."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    display_order = Column(Integer, nullable=False, default=0)
    status = Column(SAEnum(CategoryStatus, name="category_status"), nullable=False, default=CategoryStatus.ACTIVE)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    products = relationship("Product", back_populates="category")


class Product(Base):
    """A purchasable top-up denomination.

    ``instant_fulfillment`` products are delivered as soon as payment lands and
    may move from ``pending`` straight to ``completed``.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    description = Column(Text)
    price = Column(Numeric(12, 2), nullable=False)
    status = Column(SAEnum(ProductStatus, name="product_status"), nullable=False, default=ProductStatus.ACTIVE)
    instant_fulfillment = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="products")
    transactions = relationship("Transaction", back_populates="product")
