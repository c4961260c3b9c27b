"""Pydantic schemas for transaction endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ..models import PaymentStatus, TransactionStatus


class GameAccountSnapshot(BaseModel):
    """Game account details copied onto the transaction."""

    game_account: str = Field(..., min_length=1, max_length=100)
    game_zone: Optional[str] = Field(None, max_length=50)
    game_server: Optional[str] = Field(None, max_length=50)
    nickname: Optional[str] = Field(None, max_length=100)


class TransactionCreate(BaseModel):
    """Incoming payload for a top-up purchase."""

    user_id: int
    product_id: int
    game_account: Optional[GameAccountSnapshot] = None
    game_account_id: Optional[int] = Field(None, description="Saved game account to snapshot instead of inline details.")
    payment_method: str = Field(..., min_length=2, max_length=50)
    whatsapp: str = Field(..., pattern=r"^\d{10,13}$", description="Customer WhatsApp number, 10-13 digits.")
    voucher_code: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def _one_game_account(self):
        if (self.game_account is None) == (self.game_account_id is None):
            raise ValueError("Provide either game_account or game_account_id.")
        return self


class TransactionRead(BaseModel):
    """Transaction response payload."""

    id: int
    transaction_code: str
    user_id: int
    product_id: int
    game_account_data: Dict[str, Any]
    product_price: Decimal
    payment_fee: Decimal
    voucher_discount: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: PaymentStatus
    payment_reference: Optional[str]
    payment_url: Optional[str]
    whatsapp: str
    status: TransactionStatus
    processed_at: Optional[datetime]
    completed_at: Optional[datetime]
    expired_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionReceipt(BaseModel):
    """Response returned after creating a transaction.

    ``degraded`` lists the follow-up steps that did not go through, e.g.
    ``payment_url`` when the gateway was unreachable.
    """

    transaction: TransactionRead
    degraded: List[str] = Field(default_factory=list)


class TransactionStatusUpdate(BaseModel):
    """Admin request to move a transaction to a new status."""

    status: TransactionStatus
    message: Optional[str] = Field(None, max_length=500)
    admin_id: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class TransactionLogRead(BaseModel):
    id: int
    status_from: Optional[TransactionStatus]
    status_to: TransactionStatus
    message: Optional[str]
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="log_metadata")
    created_by_admin: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionCancel(BaseModel):
    """Customer request to cancel their pending transaction."""

    user_id: int
    reason: Optional[str] = Field(None, max_length=500)
