"""Admin domain schemas - Payment method and bank detail management"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PaymentMethodCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    type: str = Field(min_length=1, max_length=50)
    currency: str = "idr"
    isActive: bool = True
    isGatewayMethod: bool = False
    gatewayProvider: Optional[str] = None
    gatewayCode: Optional[str] = None
    requiresManualApproval: bool = False
    feeType: Literal["fixed", "percentage"] = "fixed"
    feeValue: float = Field(default=0, ge=0)
    minFee: Optional[float] = Field(default=None, ge=0)
    maxFee: Optional[float] = Field(default=None, ge=0)
    paymentInstructions: Optional[str] = None
    instructionType: Optional[Literal["text", "image"]] = None
    instructionImageUrl: Optional[str] = None
    gatewayImageUrl: Optional[str] = None
    bankDetailId: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return v.strip()

    @field_validator("currency")
    @classmethod
    def lower_currency(cls, v):
        return (v or "idr").lower()


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[str] = None
    currency: Optional[str] = None
    isActive: Optional[bool] = None
    isGatewayMethod: Optional[bool] = None
    gatewayProvider: Optional[str] = None
    gatewayCode: Optional[str] = None
    requiresManualApproval: Optional[bool] = None
    feeType: Optional[Literal["fixed", "percentage"]] = None
    feeValue: Optional[float] = Field(default=None, ge=0)
    minFee: Optional[float] = Field(default=None, ge=0)
    maxFee: Optional[float] = Field(default=None, ge=0)
    paymentInstructions: Optional[str] = None
    instructionType: Optional[Literal["text", "image"]] = None
    instructionImageUrl: Optional[str] = None
    gatewayImageUrl: Optional[str] = None
    bankDetailId: Optional[str] = None


class BankDetailCreate(BaseModel):
    bankName: str = Field(min_length=1, max_length=255)
    accountNumber: str = Field(min_length=1, max_length=100)
    accountName: str = Field(min_length=1, max_length=255)
    swiftCode: Optional[str] = None
    currency: str = "idr"
    isActive: bool = True


class BankDetailUpdate(BaseModel):
    bankName: Optional[str] = Field(default=None, min_length=1, max_length=255)
    accountNumber: Optional[str] = Field(default=None, min_length=1, max_length=100)
    accountName: Optional[str] = Field(default=None, min_length=1, max_length=255)
    swiftCode: Optional[str] = None
    currency: Optional[str] = None
    isActive: Optional[bool] = None
