"""Manual bank transfer gateway - payments are approved by an admin"""

import logging
from datetime import datetime, timedelta
from typing import Any

from ....config import MANUAL_PAYMENT_EXPIRY_HOURS
from .base import PaymentCallback, PaymentGateway, PaymentGatewayError, PaymentRequest, PaymentResponse

logger = logging.getLogger(__name__)


class ManualPaymentGateway(PaymentGateway):
    provider = "manual"

    def is_configured(self) -> bool:
        return True

    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        # No external call, the payment waits for admin approval
        expires_at = datetime.utcnow() + timedelta(hours=MANUAL_PAYMENT_EXPIRY_HOURS)
        logger.info(f"💳 Manual payment opened for transaction {request.transaction_id}")
        return PaymentResponse(
            success=True,
            payment_id=f"manual_{request.transaction_id}",
            status="pending",
            expires_at=expires_at,
        )

    async def check_payment_status(self, external_id: str) -> PaymentResponse:
        # State lives in our database until an admin approves or rejects it
        return PaymentResponse(success=True, payment_id=external_id, status="pending")

    async def process_callback(self, data: dict[str, Any]) -> PaymentCallback:
        raise PaymentGatewayError("Manual payments do not support external callbacks")
