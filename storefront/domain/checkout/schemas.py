"""Checkout domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class CheckoutWhatsappItem(BaseModel):
    packageId: str = Field(min_length=1)
    duration: Literal["month", "year"]


class CheckoutRequest(BaseModel):
    whatsapp: CheckoutWhatsappItem
    voucherCode: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("voucherCode")
    @classmethod
    def normalize_voucher_code(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        return v or None
