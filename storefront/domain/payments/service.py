"""Payment service - Business logic for creating and tracking payments"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import APP_URL, MANUAL_PAYMENT_EXPIRY_HOURS
from ...models import Payment, PaymentMethod, Transaction, User
from ..transactions.status_manager import TransactionStatusManager
from .expiration import PaymentExpirationService
from .fees import calculate_service_fee, describe_service_fee
from .gateways.base import CustomerInfo, PaymentGatewayError, PaymentRequest
from .gateways.duitku import parse_transaction_id
from .gateways.manager import PaymentGatewayManager, gateway_manager
from .instructions import (
    build_creation_instructions,
    build_status_info,
    build_status_instructions,
    is_manual_method,
    serialize_bank_detail,
    serialize_payment_method,
)
from .limits import get_formatted_limits, validate_payment_amount
from .repository import PaymentMethodRepository, PaymentRepository
from .schemas import CreatePaymentRequest

logger = logging.getLogger(__name__)

CALLBACK_REQUIRED_FIELDS = ("merchantCode", "amount", "merchantOrderId", "signature")

RETURN_STATUS = {"00": "success", "01": "pending"}
RETURN_MESSAGES = {
    "00": "Payment successful! Your transaction is being processed.",
    "01": "Payment is pending. Please wait for confirmation.",
    "02": "Payment was canceled or failed.",
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_transaction(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "type": transaction.type,
        "status": transaction.status,
        "statusText": TransactionStatusManager.get_status_text(transaction.status),
        "currency": transaction.currency,
        "amount": transaction.amount,
        "discountAmount": transaction.discount_amount or 0,
        "totalAfterDiscount": base_amount(transaction),
        "serviceFeeAmount": transaction.service_fee_amount or 0,
        "finalAmount": transaction.final_amount,
        "paymentMethod": transaction.payment_method,
        "notes": transaction.notes,
        "transactionDate": _iso(transaction.transaction_date),
        "createdAt": _iso(transaction.created_at),
        "expiresAt": _iso(transaction.expires_at),
    }


def serialize_items(transaction: Transaction) -> list[dict]:
    child = transaction.whatsapp_transaction
    if not child or not child.package:
        return []
    package = child.package
    price = package.price_year if child.duration == "year" else package.price_month
    return [
        {
            "type": "whatsapp_service",
            "category": "WhatsApp API Service",
            "subcategory": "API Access",
            "id": package.id,
            "name": package.name,
            "duration": child.duration,
            "price": price,
            "priceMonth": package.price_month,
            "priceYear": package.price_year,
            "maxSession": package.max_session,
            "currency": transaction.currency,
            "quantity": 1,
            "status": child.status,
            "statusText": TransactionStatusManager.get_whatsapp_status_text(child.status),
        }
    ]


def serialize_transaction_voucher(transaction: Transaction) -> Optional[dict]:
    voucher = transaction.voucher
    if not voucher:
        return None
    return {
        "id": voucher.id,
        "code": voucher.code,
        "name": voucher.name,
        "discountType": voucher.type or voucher.discount_type,
        "value": voucher.value,
        "discountAmount": transaction.discount_amount or 0,
    }


def base_amount(transaction: Transaction) -> float:
    """Amount the service fee is charged on"""
    if transaction.total_after_discount is not None:
        return transaction.total_after_discount
    return transaction.amount


def _fee_description(method: Optional[PaymentMethod]) -> str:
    if method and method.fee_type == "percentage":
        return f"{method.fee_value or 0}% service fee"
    return "Fixed service fee"


def build_pricing(transaction: Transaction, payment: Payment, method: Optional[PaymentMethod]) -> dict:
    return {
        "subtotal": transaction.amount,
        "discountAmount": transaction.discount_amount or 0,
        "totalAfterDiscount": base_amount(transaction),
        "serviceFee": {
            "amount": payment.service_fee or 0,
            "type": (method.fee_type if method else None) or "fixed",
            "value": float(method.fee_value or 0) if method else 0,
            "description": _fee_description(method),
        },
        "finalAmount": payment.amount,
        "currency": transaction.currency,
    }


class PaymentService:
    """Service layer for payment business logic"""

    def __init__(self, db: Session, gateways: Optional[PaymentGatewayManager] = None):
        self.db = db
        self.repo = PaymentRepository()
        self.methods = PaymentMethodRepository()
        self.gateways = gateways or gateway_manager

    # ------------------------------------------------------------------
    # Payment methods
    # ------------------------------------------------------------------

    def list_payment_methods(self, currency: str = "idr") -> dict:
        if (currency or "idr").lower() != "idr":
            raise HTTPException(status_code=400, detail="Only IDR currency is supported")

        methods = self.methods.list_methods(self.db, active_only=True)
        data = []
        for method in methods:
            item = serialize_payment_method(method)
            item["limits"] = get_formatted_limits(method.code, method.is_gateway_method)
            data.append(item)

        return {
            "success": True,
            "data": data,
            "meta": {
                "total": len(data),
                "gatewayMethods": sum(1 for m in methods if m.is_gateway_method),
                "manualMethods": sum(1 for m in methods if not m.is_gateway_method),
                "currency": "idr",
                "gateways": self.gateways.get_gateway_status(),
            },
        }

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_payment(self, data: CreatePaymentRequest, user: User) -> dict:
        """Open a payment for a customer's transaction"""
        PaymentExpirationService.auto_expire_on_api_call(self.db, transaction_id=data.transactionId)

        transaction = self.repo.get_user_transaction(self.db, data.transactionId, user.id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")

        if not PaymentExpirationService.can_create_payment_for_transaction(transaction):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot create payment for transaction with status {transaction.status}",
            )

        if self.repo.get_pending_for_transaction(self.db, transaction.id):
            raise HTTPException(status_code=400, detail="Transaction already has a pending payment")

        method = self.methods.get_by_code(self.db, data.paymentMethod)
        if not method or not method.is_active:
            raise HTTPException(status_code=400, detail="Payment method not available")

        subtotal = base_amount(transaction)
        fee = calculate_service_fee(subtotal, method)

        validation = validate_payment_amount(subtotal, method.code, method.is_gateway_method)
        if not validation["valid"]:
            logger.warning(f"⚠️ Payment amount {subtotal} rejected for {method.code}: {validation['message']}")
            raise HTTPException(status_code=400, detail=validation["message"])

        manual = is_manual_method(method)
        now = datetime.utcnow()
        gateway_response: Optional[dict[str, Any]] = None
        external_id = None
        payment_url = None

        if manual:
            provider = "manual"
            expires_at = now + timedelta(hours=MANUAL_PAYMENT_EXPIRY_HOURS)
        else:
            result = await self.gateways.create_payment(
                method,
                PaymentRequest(
                    transaction_id=transaction.id,
                    amount=fee.total_with_fee,
                    currency=transaction.currency,
                    payment_method_code=method.gateway_code or method.code,
                    customer=CustomerInfo(
                        name=user.name or "Customer",
                        email=user.email or "",
                        phone=user.phone,
                    ),
                    description=self._describe_order(transaction),
                ),
            )
            if not result.success:
                logger.error(f"❌ Gateway payment failed for transaction {transaction.id}: {result.error}")
                raise HTTPException(status_code=400, detail=result.error or "Payment gateway error")

            provider = method.gateway_provider or "duitku"
            expires_at = result.expires_at
            external_id = result.external_id
            payment_url = result.payment_url
            gateway_response = result.gateway_response

        transaction.service_fee_amount = fee.fee_amount
        transaction.final_amount = fee.total_with_fee
        transaction.payment_method = method.code
        self.db.commit()
        TransactionStatusManager.update_transaction_on_payment_creation(self.db, transaction.id)

        payment = self.repo.get_latest_for_transaction(self.db, transaction.id)
        if payment:
            logger.info(f"💳 Reusing payment {payment.id} ({payment.status}) for transaction {transaction.id}")
        else:
            payment = Payment(transaction_id=transaction.id)
            self.db.add(payment)

        payment.amount = fee.total_with_fee
        payment.service_fee = fee.fee_amount
        payment.method = method.code
        payment.status = "pending"
        payment.payment_date = None
        payment.expires_at = expires_at
        payment.external_id = external_id
        payment.payment_url = payment_url
        payment.gateway_provider = provider
        payment.gateway_response = gateway_response
        self.db.commit()
        self.db.refresh(payment)

        zero_price = fee.total_with_fee <= 0 and manual
        if zero_price:
            self._complete_zero_price_payment(payment)

        self.db.refresh(transaction)
        logger.info(f"✅ Payment {payment.id} created for transaction {transaction.id} via {method.code}")
        return self._build_create_response(transaction, payment, method, fee, zero_price)

    def _complete_zero_price_payment(self, payment: Payment) -> None:
        """Free orders skip the payment step and activate right away"""
        payment.status = "paid"
        payment.payment_date = datetime.utcnow()
        payment.expires_at = None
        transaction = payment.transaction
        transaction.status = "in_progress"
        transaction.expires_at = None
        if transaction.whatsapp_transaction:
            transaction.whatsapp_transaction.status = "in_progress"
        self.db.commit()
        logger.info(f"💳 Zero-price payment {payment.id} marked paid")

        try:
            TransactionStatusManager.activate_services(self.db, transaction.id)
        except Exception as e:
            logger.error(f"❌ Activation failed for zero-price transaction {transaction.id}: {e}")
        self.db.refresh(payment)

    @staticmethod
    def _describe_order(transaction: Transaction) -> str:
        child = transaction.whatsapp_transaction
        if child and child.package:
            period = "Annual" if child.duration == "year" else "Monthly"
            return f"Genfity - {child.package.name} ({period})"
        return f"Genfity Order {transaction.id[-8:].upper()}"

    def _build_create_response(
        self, transaction: Transaction, payment: Payment, method: PaymentMethod, fee, zero_price: bool
    ) -> dict:
        manual = is_manual_method(method)
        if zero_price:
            message = "Zero-price payment completed successfully! Services are being activated automatically."
        elif method.requires_manual_approval:
            message = (
                "Payment created successfully. This payment requires manual approval by admin. "
                "Please follow the payment instructions and wait for confirmation."
            )
        else:
            message = (
                f"Payment created successfully using {method.name}. "
                "Please complete payment using the provided URL or instructions."
            )

        return {
            "payment": {
                "id": payment.id,
                "transactionId": transaction.id,
                "amount": payment.amount,
                "method": payment.method,
                "methodName": method.name,
                "status": payment.status,
                "paymentUrl": payment.payment_url,
                "externalId": payment.external_id,
                "createdAt": _iso(payment.created_at),
                "expiresAt": _iso(payment.expires_at),
                "gatewayProvider": payment.gateway_provider,
                "requiresManualApproval": bool(method.requires_manual_approval),
                "isManualPayment": manual,
                "instructions": build_creation_instructions(method, payment),
                "paymentInstructions": method.payment_instructions,
                "instructionType": method.instruction_type,
                "instructionImageUrl": method.instruction_image_url,
                "bankDetails": serialize_bank_detail(method.bank_detail, transaction.currency) if manual else None,
            },
            "transaction": serialize_transaction(transaction),
            "pricing": {
                "subtotal": transaction.amount,
                "discountAmount": transaction.discount_amount or 0,
                "totalAfterDiscount": base_amount(transaction),
                "serviceFee": {
                    "amount": fee.fee_amount,
                    "type": fee.fee_type,
                    "value": fee.fee_value,
                    "description": describe_service_fee(method)["description"],
                },
                "finalAmount": fee.total_with_fee,
                "currency": transaction.currency,
            },
            "items": serialize_items(transaction),
            "voucher": serialize_transaction_voucher(transaction),
            "expirationInfo": {
                "paymentExpiresAt": _iso(payment.expires_at),
                "transactionExpiresAt": _iso(transaction.expires_at),
                "hasExpiration": payment.expires_at is not None,
            },
            "message": message,
        }

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _get_user_payment(self, payment_id: str, user: User) -> Payment:
        payment = self.repo.get_user_payment(self.db, payment_id, user.id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        PaymentExpirationService.auto_expire_on_api_call(
            self.db, transaction_id=payment.transaction_id, payment_id=payment.id
        )
        self.db.refresh(payment)
        return payment

    def get_payment_status(self, payment_id: str, user: User) -> dict:
        payment = self._get_user_payment(payment_id, user)
        transaction = payment.transaction
        method = self.methods.get_by_code(self.db, payment.method)
        currency = transaction.currency
        instructions, additional_info = build_status_instructions(payment, method, currency)

        return {
            "payment": {
                "id": payment.id,
                "amount": payment.amount,
                "serviceFee": payment.service_fee or 0,
                "method": payment.method,
                "methodName": method.name if method else payment.method,
                "status": payment.status,
                "paymentDate": _iso(payment.payment_date),
                "expiresAt": _iso(payment.expires_at),
                "createdAt": _iso(payment.created_at),
                "externalId": payment.external_id,
                "paymentUrl": payment.payment_url,
                "gatewayProvider": payment.gateway_provider,
                "gatewayResponse": payment.gateway_response,
                "requiresManualApproval": bool(method.requires_manual_approval) if method else False,
            },
            "transaction": serialize_transaction(transaction),
            "pricing": build_pricing(transaction, payment, method),
            "items": serialize_items(transaction),
            "voucher": serialize_transaction_voucher(transaction),
            "instructions": instructions,
            "additionalInfo": additional_info,
            "bankDetails": serialize_bank_detail(method.bank_detail, currency) if method else None,
            "serviceFeeInfo": describe_service_fee(method) if method else None,
            "statusInfo": build_status_info(payment.status),
            "subscriptionInfo": {
                "activated": False,
                "message": (
                    "Services will be activated automatically"
                    if payment.status == "paid"
                    else "Complete payment to activate services"
                ),
            },
        }

    def get_public_payment_status(self, payment_id: str) -> dict:
        """Status without customer details, for shared payment links"""
        payment = self.repo.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        PaymentExpirationService.auto_expire_on_api_call(
            self.db, transaction_id=payment.transaction_id, payment_id=payment.id
        )
        self.db.refresh(payment)

        method = self.methods.get_by_code(self.db, payment.method)
        transaction = payment.transaction
        instructions, additional_info = build_status_instructions(payment, method, transaction.currency)
        return {
            "payment": {
                "id": payment.id,
                "amount": payment.amount,
                "method": payment.method,
                "methodName": method.name if method else payment.method,
                "status": payment.status,
                "paymentUrl": payment.payment_url,
                "expiresAt": _iso(payment.expires_at),
                "paymentDate": _iso(payment.payment_date),
                "createdAt": _iso(payment.created_at),
            },
            "transaction": {
                "id": transaction.id,
                "status": transaction.status,
                "statusText": TransactionStatusManager.get_status_text(transaction.status),
                "currency": transaction.currency,
            },
            "items": serialize_items(transaction),
            "instructions": instructions,
            "additionalInfo": additional_info,
            "statusInfo": build_status_info(payment.status),
        }

    async def check_payment_status(self, payment_id: str, user: User) -> dict:
        """Ask the gateway for a pending payment's state and apply any change"""
        payment = self._get_user_payment(payment_id, user)
        previous = payment.status

        if payment.status != "pending" or payment.gateway_provider in (None, "manual"):
            return {"paymentId": payment.id, "status": payment.status, "previousStatus": previous, "updated": False}

        method = self.methods.get_by_code(self.db, payment.method)
        gateway_data = payment.gateway_response if isinstance(payment.gateway_response, dict) else {}
        merchant_order_id = gateway_data.get("merchantOrderId") or payment.external_id
        if not merchant_order_id:
            return {"paymentId": payment.id, "status": payment.status, "previousStatus": previous, "updated": False}

        result = await self.gateways.check_payment_status(method, merchant_order_id)
        if not result.success:
            logger.warning(f"⚠️ Gateway status check failed for payment {payment.id}: {result.error}")
            return {
                "paymentId": payment.id,
                "status": payment.status,
                "previousStatus": previous,
                "updated": False,
                "message": result.error,
            }

        if result.status == previous:
            return {"paymentId": payment.id, "status": previous, "previousStatus": previous, "updated": False}

        PaymentExpirationService.update_payment_status(self.db, payment.id, result.status)
        if result.status == "paid":
            activation = PaymentExpirationService.activate_services_after_payment_update(
                self.db, payment.transaction_id
            )
            logger.info(f"💳 Payment {payment.id} paid after status check, activation: {activation}")

        return {"paymentId": payment.id, "status": result.status, "previousStatus": previous, "updated": True}

    # ------------------------------------------------------------------
    # Duitku callback and return
    # ------------------------------------------------------------------

    def _find_duitku_payment(self, reference: Optional[str], transaction_id: Optional[str]) -> Optional[Payment]:
        payment = self.repo.get_by_external_id(self.db, reference) if reference else None
        if not payment and transaction_id:
            payment = self.repo.get_latest_for_transaction(self.db, transaction_id, gateway_provider="duitku")
        return payment

    async def handle_duitku_callback(self, data: dict[str, Any]) -> dict:
        """
        Apply a Duitku payment notification.

        Returns the payment id, the new status and whether anything changed.
        Repeated callbacks with the same result are acknowledged without writes.
        """
        missing = [field for field in CALLBACK_REQUIRED_FIELDS if not data.get(field)]
        if missing:
            raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

        gateway = self.gateways.get_gateway("duitku")
        if not gateway or not gateway.is_configured():
            logger.error("❌ Duitku callback received but the gateway is not configured")
            raise HTTPException(status_code=503, detail="Payment gateway not configured")

        try:
            callback = await self.gateways.process_callback("duitku", data)
        except PaymentGatewayError as e:
            logger.warning(f"🚫 Rejected Duitku callback for order {data.get('merchantOrderId')}: {e.message}")
            raise HTTPException(status_code=400, detail=e.message)

        reference = callback.external_id
        payment = self._find_duitku_payment(reference, callback.transaction_id)
        if not payment:
            logger.error(
                f"❌ Duitku callback for unknown payment: order={callback.merchant_order_id}, reference={reference}"
            )
            raise HTTPException(status_code=404, detail="Payment not found")

        new_status = callback.status
        if payment.status == new_status:
            logger.info(f"Duitku callback for payment {payment.id} unchanged ({new_status}), acknowledging")
            return {"paymentId": payment.id, "status": new_status, "changed": False}

        now = callback.payment_date
        previous = payment.status
        payment.status = new_status
        payment.external_id = reference or payment.external_id
        if new_status == "paid":
            payment.payment_date = now
        if new_status != "pending":
            payment.expires_at = None

        raw = dict(callback.raw_data)
        raw["callbackTime"] = now.isoformat()
        payment.gateway_response = {**(payment.gateway_response or {}), "callback": raw}
        self.db.commit()
        logger.info(f"💳 Duitku callback: payment {payment.id} {previous} -> {new_status}")

        if new_status in ("paid", "failed", "expired"):
            try:
                TransactionStatusManager.update_transaction_on_payment(self.db, payment.transaction_id, new_status)
            except Exception as e:
                logger.error(f"❌ Error updating transaction {payment.transaction_id} after callback: {e}")

        return {"paymentId": payment.id, "status": new_status, "changed": True}

    def resolve_duitku_return(
        self, merchant_order_id: Optional[str], result_code: Optional[str], reference: Optional[str]
    ) -> dict:
        """Where to send a customer coming back from the Duitku payment page"""
        transaction_id = parse_transaction_id(merchant_order_id) if merchant_order_id else None
        payment = self._find_duitku_payment(reference, transaction_id)
        status = RETURN_STATUS.get(result_code, "failed")

        if payment:
            redirect_url = f"{APP_URL}/payment/status/{payment.id}?status={status}"
            if reference:
                redirect_url += f"&ref={reference}"
        else:
            redirect_url = f"{APP_URL}/payment/error?merchantOrderId={merchant_order_id}&message=Payment not found"

        return {
            "merchantOrderId": merchant_order_id,
            "reference": reference,
            "resultCode": result_code,
            "status": status,
            "statusMessage": RETURN_MESSAGES.get(
                result_code, "Payment completed. Please check your transaction status."
            ),
            "payment": (
                {
                    "id": payment.id,
                    "transactionId": payment.transaction_id,
                    "status": payment.status,
                    "amount": payment.amount,
                    "method": payment.method,
                }
                if payment
                else None
            ),
            "redirectUrl": redirect_url,
        }
