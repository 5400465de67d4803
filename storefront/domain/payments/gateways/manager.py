"""Routes payment operations to the gateway that owns a payment method"""

import logging
from typing import Any, Optional

from ....models import PaymentMethod
from .base import PaymentCallback, PaymentGateway, PaymentGatewayError, PaymentRequest, PaymentResponse
from .duitku import DuitkuGateway
from .manual import ManualPaymentGateway

logger = logging.getLogger(__name__)


class PaymentGatewayManager:
    """Registry of payment gateways keyed by provider"""

    def __init__(self, gateways: Optional[list[PaymentGateway]] = None):
        self.gateways: dict[str, PaymentGateway] = {}
        for gateway in gateways or [ManualPaymentGateway(), DuitkuGateway()]:
            self.gateways[gateway.provider] = gateway

    def get_gateway(self, provider: str) -> Optional[PaymentGateway]:
        return self.gateways.get(provider)

    def get_gateway_for_method(self, method: Optional[PaymentMethod]) -> PaymentGateway:
        """Gateway for a payment method, manual when none applies"""
        if method and method.is_gateway_method and method.gateway_provider:
            gateway = self.gateways.get(method.gateway_provider)
            if gateway and gateway.is_active:
                return gateway
            logger.warning(f"⚠️ Gateway {method.gateway_provider} unavailable for {method.code}, using manual")
        return self.gateways["manual"]

    async def create_payment(self, method: PaymentMethod, request: PaymentRequest) -> PaymentResponse:
        gateway = self.get_gateway_for_method(method)
        try:
            return await gateway.create_payment(request)
        except PaymentGatewayError as e:
            logger.error(f"❌ {gateway.provider} payment creation failed: {e.message}")
            return PaymentResponse(success=False, status="failed", error=e.message)

    async def check_payment_status(self, method: Optional[PaymentMethod], external_id: str) -> PaymentResponse:
        gateway = self.get_gateway_for_method(method)
        return await gateway.check_payment_status(external_id)

    async def process_callback(self, provider: str, data: dict[str, Any]) -> PaymentCallback:
        gateway = self.gateways.get(provider)
        if not gateway or not gateway.is_active:
            raise PaymentGatewayError(f"Gateway {provider} not found or not active")
        return await gateway.process_callback(data)

    def get_gateway_status(self) -> dict:
        status = {}
        for provider, gateway in self.gateways.items():
            status[provider] = {
                "isActive": gateway.is_active,
                "isConfigured": gateway.is_configured(),
            }
            if isinstance(gateway, DuitkuGateway):
                status[provider]["isProduction"] = gateway.is_production
        return status


gateway_manager = PaymentGatewayManager()
