"""Customer, admin and saved game account models."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class User(Base):
    """Represents a customer buying top-ups."""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("phone", name="users_phone_unique"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(15), nullable=False)
    email = Column(String(100))
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    game_accounts = relationship("GameAccount", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")
    voucher_usages = relationship("VoucherUsage", back_populates="user")


class AdminUser(Base):
    """Back-office operator; referenced by transaction log rows."""

    __tablename__ = "admin_users"
    __table_args__ = (
        UniqueConstraint("username", name="admin_users_username_unique"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="operator")
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class GameAccount(Base):
    """A game account saved on the user's profile."""

    __tablename__ = "game_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_name = Column(String(100), nullable=False)
    game_id = Column(String(100), nullable=False)
    server = Column(String(50))
    zone_id = Column(String(50))
    nickname = Column(String(100))
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="game_accounts")
