"""Payment schemas - Pydantic models for payment endpoints"""

from pydantic import BaseModel, field_validator


class CreatePaymentRequest(BaseModel):
    transactionId: str
    paymentMethod: str

    @field_validator("transactionId", "paymentMethod")
    @classmethod
    def not_blank(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("Field is required")
        return v
