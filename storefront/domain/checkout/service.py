"""Checkout service - Turns a cart into a transaction awaiting payment"""

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import MANUAL_PAYMENT_EXPIRY_HOURS, TRANSACTION_EXPIRY_DAYS
from ...models import Transaction, TransactionWhatsappService, User, WhatsappApiPackage
from ..payments.expiration import PaymentExpirationService
from ..payments.fees import calculate_service_fee
from ..payments.instructions import is_manual_method, serialize_payment_method
from ..payments.limits import is_payment_amount_valid
from ..payments.repository import PaymentMethodRepository
from ..transactions.status_manager import TransactionStatusManager
from ..vouchers.repository import VoucherRepository
from ..vouchers.service import VoucherError, calculate_discount, check_voucher_rules, get_calculation_type
from .schemas import CheckoutRequest

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service layer for checkout business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.vouchers = VoucherRepository()
        self.methods = PaymentMethodRepository()

    def checkout(self, data: CheckoutRequest, user: User) -> dict:
        PaymentExpirationService.auto_expire_on_api_call(self.db)

        package = self.db.query(WhatsappApiPackage).filter(WhatsappApiPackage.id == data.whatsapp.packageId).first()
        if not package:
            raise HTTPException(status_code=404, detail="WhatsApp package not found")

        duration = data.whatsapp.duration
        subtotal = float(package.price_month if duration == "month" else package.price_year)

        voucher = None
        discount = 0.0
        if data.voucherCode:
            try:
                voucher = check_voucher_rules(
                    self.db, self.vouchers.get_by_code(self.db, data.voucherCode), subtotal, user.id
                )
            except VoucherError as e:
                logger.info(f"Checkout voucher {data.voucherCode} rejected for user {user.id}: {e.message}")
                raise HTTPException(status_code=400, detail=e.message)
            discount = calculate_discount(voucher, subtotal)

        total_after_discount = round(subtotal - discount, 2)
        now = datetime.utcnow()

        transaction = Transaction(
            user_id=user.id,
            type="whatsapp_service",
            status="created",
            currency="idr",
            amount=subtotal,
            original_amount=subtotal,
            discount_amount=discount,
            total_after_discount=total_after_discount,
            voucher_id=voucher.id if voucher else None,
            notes=data.notes,
            expires_at=now + timedelta(days=TRANSACTION_EXPIRY_DAYS),
        )
        self.db.add(transaction)
        self.db.flush()

        self.db.add(
            TransactionWhatsappService(
                transaction_id=transaction.id,
                package_id=package.id,
                duration=duration,
                status="created",
            )
        )
        if voucher:
            self.vouchers.record_usage(self.db, voucher, user.id, transaction.id, discount)

        self.db.commit()
        self.db.refresh(transaction)
        logger.info(
            f"✅ Checkout created transaction {transaction.id} for user {user.id}: "
            f"{package.name} ({duration}), total {total_after_discount}"
        )

        return self._build_response(transaction, package, subtotal, discount, total_after_discount, voucher, now)

    def _payment_options(self, amount: float) -> tuple[list[dict], list[dict]]:
        """Fee preview and selectable methods for the amount due"""
        previews = []
        available = []
        for method in self.methods.list_methods(self.db, active_only=True):
            if amount <= 0 and not is_manual_method(method):
                continue

            fee = calculate_service_fee(amount, method)
            if is_payment_amount_valid(fee.total_with_fee, method.code, method.is_gateway_method):
                previews.append(
                    {
                        "paymentMethod": method.code,
                        "name": method.name,
                        "type": fee.fee_type,
                        "value": fee.fee_value,
                        "feeAmount": fee.fee_amount,
                        "totalWithFee": fee.total_with_fee,
                        "requiresManualApproval": bool(method.requires_manual_approval),
                        "paymentInstructions": method.payment_instructions,
                        "isValid": True,
                    }
                )
            if is_payment_amount_valid(amount, method.code, method.is_gateway_method):
                available.append(serialize_payment_method(method))
        return previews, available

    def _build_response(
        self,
        transaction: Transaction,
        package: WhatsappApiPackage,
        subtotal: float,
        discount: float,
        total_after_discount: float,
        voucher,
        now: datetime,
    ) -> dict:
        previews, available = self._payment_options(total_after_discount)
        child = transaction.whatsapp_transaction
        days_left = max(0, (transaction.expires_at - now).days) if transaction.expires_at else 0
        zero_price = total_after_discount <= 0

        return {
            "transactionId": transaction.id,
            "status": transaction.status,
            "statusText": TransactionStatusManager.get_status_text(transaction.status),
            "currency": transaction.currency,
            "notes": transaction.notes,
            "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
            "expiresAt": transaction.expires_at.isoformat() if transaction.expires_at else None,
            "items": [
                {
                    "id": package.id,
                    "type": "whatsapp",
                    "name": package.name,
                    "description": package.description,
                    "price": subtotal,
                    "quantity": 1,
                    "total": subtotal,
                    "currency": "idr",
                    "duration": child.duration if child else None,
                    "maxSession": package.max_session,
                }
            ],
            "totalItems": 1,
            "subtotal": subtotal,
            "voucher": (
                {
                    "code": voucher.code,
                    "name": voucher.name,
                    "type": get_calculation_type(voucher),
                    "discountAmount": discount,
                }
                if voucher
                else None
            ),
            "totalDiscount": discount,
            "totalAfterDiscount": total_after_discount,
            "serviceFeePreview": previews,
            "availablePaymentMethods": available,
            "expirationInfo": {
                "transactionExpiresAt": transaction.expires_at.isoformat() if transaction.expires_at else None,
                "paymentExpiresAfterCreation": f"{MANUAL_PAYMENT_EXPIRY_HOURS} hours",
                "transactionExpiresAfterCreation": f"{TRANSACTION_EXPIRY_DAYS} days",
                "timeRemaining": f"{days_left} days",
            },
            "zeroPrice": {
                "isZeroPrice": zero_price,
                "message": (
                    "This order is free. Choose a manual payment method to activate it instantly."
                    if zero_price
                    else None
                ),
            },
            "nextStep": (
                "Select a manual payment method to complete your free order"
                if zero_price
                else "Select a payment method and create payment"
            ),
        }
