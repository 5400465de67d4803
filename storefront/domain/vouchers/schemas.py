"""Voucher domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class VoucherItem(BaseModel):
    type: Literal["whatsapp"]
    id: str
    duration: Optional[Literal["month", "year"]] = None
    quantity: int = Field(default=1, gt=0)


class CheckVoucherRequest(BaseModel):
    code: str = Field(min_length=1)
    items: list[VoucherItem] = Field(min_length=1)


class VoucherCreate(BaseModel):
    """Schema for creating a voucher"""

    code: str = Field(min_length=1, max_length=50)
    name: str
    description: Optional[str] = None
    type: Optional[Literal["percentage", "fixed_amount"]] = None
    discountType: Literal["percentage", "fixed_amount"] = "fixed_amount"
    value: float = Field(gt=0)
    minAmount: Optional[float] = None
    maxDiscount: Optional[float] = None
    maxUses: Optional[int] = None
    allowMultipleUsePerUser: bool = False
    isActive: bool = True
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper()


class VoucherUpdate(BaseModel):
    """Schema for updating a voucher"""

    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[Literal["percentage", "fixed_amount"]] = None
    discountType: Optional[Literal["percentage", "fixed_amount"]] = None
    value: Optional[float] = Field(default=None, gt=0)
    minAmount: Optional[float] = None
    maxDiscount: Optional[float] = None
    maxUses: Optional[int] = None
    allowMultipleUsePerUser: Optional[bool] = None
    isActive: Optional[bool] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
