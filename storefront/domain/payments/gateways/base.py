"""Payment gateway contract shared by manual and hosted gateways"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class PaymentGatewayError(Exception):
    """Raised when a gateway rejects or cannot process a request"""

    def __init__(self, message: str, status_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None


class PaymentRequest(BaseModel):
    transaction_id: str
    amount: float
    currency: str = "idr"
    payment_method_code: str
    customer: CustomerInfo
    description: Optional[str] = None


class PaymentResponse(BaseModel):
    success: bool
    payment_id: str = ""  # Gateway-side order id
    status: str = "pending"  # pending, paid, failed, expired
    external_id: Optional[str] = None
    payment_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    gateway_response: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class PaymentCallback(BaseModel):
    gateway_provider: str
    external_id: Optional[str] = None
    merchant_order_id: str
    transaction_id: str
    status: str
    amount: float
    payment_date: datetime
    raw_data: dict[str, Any]


class PaymentGateway(ABC):
    """Base class for payment gateways"""

    provider: str = ""
    is_active: bool = True

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present"""

    @abstractmethod
    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        """Open a payment with the provider"""

    @abstractmethod
    async def check_payment_status(self, external_id: str) -> PaymentResponse:
        """Ask the provider for the current state of a payment"""

    @abstractmethod
    async def process_callback(self, data: dict[str, Any]) -> PaymentCallback:
        """Validate and translate a provider callback"""
