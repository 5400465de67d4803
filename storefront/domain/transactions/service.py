"""Transaction service - Customer order history and admin payment review"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Payment, Transaction, User
from ...shared.formatting import duration_text
from ..payments.expiration import OPEN_TRANSACTION_STATUSES, PaymentExpirationService
from ..payments.repository import PaymentRepository
from .repository import TransactionRepository
from .status_manager import TransactionStatusManager

logger = logging.getLogger(__name__)

RETRYABLE_PAYMENT_STATUSES = ("failed", "expired", "cancelled")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_payment_summary(payment: Optional[Payment]) -> Optional[dict]:
    if not payment:
        return None
    return {
        "id": payment.id,
        "status": payment.status,
        "method": payment.method,
        "amount": payment.amount,
        "serviceFee": payment.service_fee or 0,
        "paymentUrl": payment.payment_url,
        "gatewayProvider": payment.gateway_provider,
        "paymentDate": _iso(payment.payment_date),
        "expiresAt": _iso(payment.expires_at),
        "createdAt": _iso(payment.created_at),
    }


def can_retry_payment(transaction: Transaction, latest: Optional[Payment]) -> bool:
    """Customer may open a new payment for this order"""
    if transaction.status not in OPEN_TRANSACTION_STATUSES:
        return False
    if PaymentExpirationService.is_transaction_expired(transaction):
        return False
    return latest is None or latest.status in RETRYABLE_PAYMENT_STATUSES


def serialize_transaction_row(transaction: Transaction, include_user: bool = False) -> dict:
    child = transaction.whatsapp_transaction
    package = child.package if child else None
    latest = transaction.payments[0] if transaction.payments else None

    row = {
        "id": transaction.id,
        "type": transaction.type,
        "status": transaction.status,
        "statusText": TransactionStatusManager.get_status_text(transaction.status),
        "currency": transaction.currency,
        "amount": transaction.amount,
        "discountAmount": transaction.discount_amount or 0,
        "totalAfterDiscount": transaction.total_after_discount,
        "serviceFeeAmount": transaction.service_fee_amount or 0,
        "finalAmount": transaction.final_amount,
        "notes": transaction.notes,
        "createdAt": _iso(transaction.created_at),
        "expiresAt": _iso(transaction.expires_at),
        "item_name": package.name if package else None,
        "durationText": duration_text(child.duration) if child else None,
        "whatsapp": (
            {
                "id": child.id,
                "packageId": child.package_id,
                "packageName": package.name if package else None,
                "maxSession": package.max_session if package else None,
                "duration": child.duration,
                "status": child.status,
                "statusText": TransactionStatusManager.get_whatsapp_status_text(child.status),
                "startDate": _iso(child.start_date),
                "endDate": _iso(child.end_date),
            }
            if child
            else None
        ),
        "voucher": {"code": transaction.voucher.code, "name": transaction.voucher.name}
        if transaction.voucher
        else None,
        "payment": serialize_payment_summary(latest),
        "canRetryPayment": can_retry_payment(transaction, latest),
    }
    if include_user and transaction.user:
        row["user"] = {
            "id": transaction.user.id,
            "name": transaction.user.name,
            "email": transaction.user.email,
            "phone": transaction.user.phone,
        }
    return row


def _page(rows: list[dict], total: int, limit: int, offset: int) -> dict:
    return {
        "transactions": rows,
        "pagination": {"total": total, "limit": limit, "offset": offset, "hasMore": offset + len(rows) < total},
    }


class TransactionService:
    """Service layer for transaction business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TransactionRepository()

    def list_customer_transactions(
        self, user: User, status: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> dict:
        PaymentExpirationService.auto_expire_on_api_call(self.db)
        rows, total = self.repo.list_transactions(self.db, user_id=user.id, status=status, limit=limit, offset=offset)
        return _page([serialize_transaction_row(t) for t in rows], total, limit, offset)

    def get_customer_transaction(self, transaction_id: str, user: User) -> dict:
        PaymentExpirationService.auto_expire_on_api_call(self.db, transaction_id=transaction_id)
        transaction = self.repo.get_user_transaction(self.db, transaction_id, user.id)
        if not transaction:
            raise HTTPException(status_code=404, detail="Transaction not found")

        data = serialize_transaction_row(transaction)
        data["payments"] = [serialize_payment_summary(p) for p in transaction.payments]
        return data

    def cancel_customer_transaction(self, transaction_id: str, user: User) -> dict:
        try:
            transaction = PaymentExpirationService.cancel_transaction_by_user(self.db, transaction_id, user.id)
        except LookupError:
            raise HTTPException(status_code=404, detail="Transaction not found")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        logger.info(f"🚫 User {user.id} cancelled transaction {transaction_id}")
        transaction = self.repo.get_transaction(self.db, transaction.id)
        return serialize_transaction_row(transaction)

    def list_admin_transactions(
        self, type: Optional[str] = None, status: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> dict:
        PaymentExpirationService.auto_expire_on_api_call(self.db)
        rows, total = self.repo.list_transactions(self.db, type=type, status=status, limit=limit, offset=offset)
        return _page([serialize_transaction_row(t, include_user=True) for t in rows], total, limit, offset)

    # ------------------------------------------------------------------
    # Manual payment review
    # ------------------------------------------------------------------

    def _get_pending_payment(self, payment_id: str) -> Payment:
        payment = PaymentRepository.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        if payment.status != "pending":
            raise HTTPException(status_code=400, detail=f"Payment is already {payment.status}")
        return payment

    def approve_payment(self, payment_id: str, admin: User) -> dict:
        """Mark a manual payment paid and activate the order"""
        payment = self._get_pending_payment(payment_id)

        PaymentExpirationService.update_payment_status(self.db, payment.id, "paid")
        activation = PaymentExpirationService.activate_services_after_payment_update(self.db, payment.transaction_id)
        logger.info(f"✅ Admin {admin.id} approved payment {payment.id}: {activation}")

        transaction = self.repo.get_transaction(self.db, payment.transaction_id)
        return {
            "paymentId": payment.id,
            "status": "paid",
            "transaction": serialize_transaction_row(transaction, include_user=True),
            "activation": activation,
        }

    def reject_payment(self, payment_id: str, admin: User, reason: Optional[str] = None) -> dict:
        payment = self._get_pending_payment(payment_id)

        PaymentExpirationService.update_payment_status(self.db, payment.id, "failed")
        logger.info(f"🚫 Admin {admin.id} rejected payment {payment.id}" + (f": {reason}" if reason else ""))

        transaction = self.repo.get_transaction(self.db, payment.transaction_id)
        return {
            "paymentId": payment.id,
            "status": "failed",
            "reason": reason,
            "transaction": serialize_transaction_row(transaction, include_user=True),
        }
