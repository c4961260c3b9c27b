"""Pydantic schemas for voucher endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..models import DiscountType, VoucherScope, VoucherStatus


class VoucherCreate(BaseModel):
    """Admin payload for creating a voucher."""

    code: str = Field(..., min_length=3, max_length=50)
    discount_type: DiscountType
    value: Decimal = Field(..., gt=0)
    description: Optional[str] = None
    scope: VoucherScope = VoucherScope.ALL
    target_ids: List[int] = Field(default_factory=list, description="Category or product ids for scoped vouchers.")
    min_transaction_amount: Decimal = Field(Decimal("0"), ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    quota: int = Field(..., ge=1)
    max_uses_per_user: int = Field(1, ge=1)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_window(self) -> "VoucherCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class VoucherUpdate(BaseModel):
    """Admin payload for editing a voucher; omitted fields are left alone."""

    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    scope: Optional[VoucherScope] = None
    target_ids: Optional[List[int]] = None
    min_transaction_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, ge=0)
    quota: Optional[int] = Field(None, ge=1)
    max_uses_per_user: Optional[int] = Field(None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[VoucherStatus] = None


class VoucherApplicationRead(BaseModel):
    applicable_type: str
    applicable_id: int

    class Config:
        from_attributes = True


class VoucherRead(BaseModel):
    """Voucher as seen by administrators."""

    id: int
    code: str
    discount_type: DiscountType
    value: Decimal
    description: Optional[str]
    scope: VoucherScope
    applications: List[VoucherApplicationRead] = []
    min_transaction_amount: Decimal
    max_discount_amount: Optional[Decimal]
    quota: int
    used_count: int
    max_uses_per_user: int
    start_date: date
    end_date: date
    status: VoucherStatus
    created_at: datetime

    class Config:
        from_attributes = True


class VoucherEvaluateRequest(BaseModel):
    """Request body for checking a voucher against a product."""

    code: str = Field(..., min_length=1, max_length=50)
    user_id: int
    product_id: int


class VoucherEvaluation(BaseModel):
    valid: bool
    discount_amount: Decimal
    reason: Optional[str] = None
    message: Optional[str] = None


class VoucherUserUsage(BaseModel):
    user_id: int
    uses: int
    total_discount: Decimal


class VoucherUsageStats(BaseModel):
    """Per-voucher redemption summary for administrators."""

    code: str
    status: VoucherStatus
    quota: int
    used_count: int
    remaining: int
    total_discount: Decimal
    unique_users: int
    per_user: List[VoucherUserUsage] = []
