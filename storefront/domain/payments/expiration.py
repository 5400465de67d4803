"""
Payment Expiration Service

Expires stale payments and transactions, keeps payment and transaction
status in sync, and guards service activation after manual approval.
"""

import logging
import threading
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Payment, Transaction
from ..transactions.status_manager import TransactionStatusManager

logger = logging.getLogger(__name__)

_activation_locks: set[str] = set()
_activation_guard = threading.Lock()

OPEN_TRANSACTION_STATUSES = ("created", "pending")


def _acquire_activation(transaction_id: str) -> bool:
    with _activation_guard:
        if transaction_id in _activation_locks:
            return False
        _activation_locks.add(transaction_id)
        return True


def _release_activation(transaction_id: str) -> None:
    with _activation_guard:
        _activation_locks.discard(transaction_id)


class PaymentExpirationService:
    """Expiry and payment-to-transaction status synchronisation"""

    @staticmethod
    def is_payment_expired(payment: Payment, now: Optional[datetime] = None) -> bool:
        if not payment.expires_at or payment.status != "pending":
            return False
        return (now or datetime.utcnow()) > payment.expires_at

    @staticmethod
    def is_transaction_expired(transaction: Transaction, now: Optional[datetime] = None) -> bool:
        if not transaction.expires_at or transaction.status not in OPEN_TRANSACTION_STATUSES:
            return False
        return (now or datetime.utcnow()) > transaction.expires_at

    @classmethod
    def can_create_payment_for_transaction(cls, transaction: Optional[Transaction]) -> bool:
        if not transaction:
            return False
        if transaction.expires_at and datetime.utcnow() > transaction.expires_at:
            return False
        return transaction.status in OPEN_TRANSACTION_STATUSES

    @classmethod
    def update_payment_status(cls, db: Session, payment_id: str, status: str) -> Payment:
        """
        Set a payment's status and bring its transaction along.

        Activation is not triggered here; callers that approve a payment run
        activate_services_after_payment_update once the status is stored.
        """
        payment = db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise ValueError("Payment not found")

        payment.status = status
        if status != "pending":
            payment.expires_at = None
        if status == "paid":
            payment.payment_date = datetime.utcnow()

        transaction = payment.transaction
        if transaction:
            if status == "paid":
                transaction.status = "in_progress"
                transaction.expires_at = None
                child = transaction.whatsapp_transaction
                if child and child.status != "success":
                    child.status = "in_progress"
                logger.info(f"💳 Payment {payment_id} paid, transaction {transaction.id} queued for activation")
            elif status in ("failed", "expired") and transaction.status in OPEN_TRANSACTION_STATUSES:
                cls._expire_transaction(transaction)
                logger.info(f"⚠️ Payment {payment_id} {status}, transaction {transaction.id} expired")

        db.commit()
        db.refresh(payment)
        return payment

    @staticmethod
    def _expire_transaction(transaction: Transaction) -> None:
        transaction.status = "expired"
        transaction.expires_at = None
        child = transaction.whatsapp_transaction
        if child and child.status in OPEN_TRANSACTION_STATUSES:
            child.status = "expired"

    @classmethod
    def auto_expire_on_api_call(
        cls, db: Session, transaction_id: Optional[str] = None, payment_id: Optional[str] = None
    ) -> None:
        """Expire stale rows before serving a request; never raises"""
        now = datetime.utcnow()
        try:
            payments = db.query(Payment).filter(Payment.status == "pending", Payment.expires_at < now)
            transactions = db.query(Transaction).filter(
                Transaction.status.in_(OPEN_TRANSACTION_STATUSES), Transaction.expires_at < now
            )
            if payment_id:
                payments = payments.filter(Payment.id == payment_id)
            if transaction_id:
                transactions = transactions.filter(Transaction.id == transaction_id)

            expired_payments = 0
            if payment_id or not transaction_id:
                for payment in payments.all():
                    payment.status = "expired"
                    payment.expires_at = None
                    expired_payments += 1

            expired_transactions = 0
            if transaction_id or not payment_id:
                for transaction in transactions.all():
                    cls._expire_transaction(transaction)
                    expired_transactions += 1

            db.commit()

            if not payment_id and not transaction_id:
                if expired_payments or expired_transactions:
                    logger.info(f"⏰ Expired {expired_payments} payments and {expired_transactions} transactions")
                cls.clear_expiry_for_finished(db)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error during auto-expiration: {e}")

    @staticmethod
    def clear_expiry_for_finished(db: Session) -> tuple[int, int]:
        """Drop expiry dates from rows that can no longer expire"""
        cleared_payments = (
            db.query(Payment)
            .filter(Payment.status != "pending", Payment.expires_at.isnot(None))
            .update({Payment.expires_at: None}, synchronize_session=False)
        )
        cleared_transactions = (
            db.query(Transaction)
            .filter(Transaction.status.notin_(OPEN_TRANSACTION_STATUSES), Transaction.expires_at.isnot(None))
            .update({Transaction.expires_at: None}, synchronize_session=False)
        )
        db.commit()
        if cleared_payments or cleared_transactions:
            logger.info(
                f"Cleared expiry dates for {cleared_payments} payments and {cleared_transactions} transactions"
            )
        return cleared_payments, cleared_transactions

    @classmethod
    def process_expired_payments(cls, db: Session) -> int:
        now = datetime.utcnow()
        expired = db.query(Payment).filter(Payment.status == "pending", Payment.expires_at < now).all()
        for payment in expired:
            cls.update_payment_status(db, payment.id, "expired")
        return len(expired)

    @classmethod
    def process_expired_transactions(cls, db: Session) -> int:
        now = datetime.utcnow()
        expired = (
            db.query(Transaction)
            .filter(Transaction.status.in_(OPEN_TRANSACTION_STATUSES), Transaction.expires_at < now)
            .all()
        )
        for transaction in expired:
            cls._expire_transaction(transaction)
        db.commit()
        return len(expired)

    @staticmethod
    def _latest_paid_payment(transaction: Transaction) -> Optional[Payment]:
        return next((p for p in transaction.payments if p.status == "paid"), None)

    @classmethod
    def activate_services_after_payment_update(cls, db: Session, transaction_id: str) -> dict:
        """Activate services once an admin has marked the payment paid"""
        if not _acquire_activation(transaction_id):
            logger.info(f"Activation already in progress for transaction {transaction_id}, skipping")
            return {"success": False, "reason": "Activation already in progress"}

        try:
            transaction = db.query(Transaction).filter(Transaction.id == transaction_id).first()
            if not transaction:
                return {"success": False, "reason": "Transaction not found"}
            if transaction.status != "in_progress":
                logger.info(f"Transaction {transaction_id} is {transaction.status}, expected in_progress")
                return {"success": False, "reason": "Transaction not in progress"}
            if not cls._latest_paid_payment(transaction):
                return {"success": False, "reason": "Payment not paid"}

            child = transaction.whatsapp_transaction
            if child and child.status == "success":
                return {"success": True, "reason": "WhatsApp transaction already processed"}

            TransactionStatusManager.activate_services(db, transaction_id)
            logger.info(f"✅ Activated services for transaction {transaction_id}")
            return {"success": True, "transactionId": transaction_id}
        except Exception as e:
            logger.error(f"❌ Error activating services for transaction {transaction_id}: {e}")
            return {"success": False, "error": str(e)}
        finally:
            _release_activation(transaction_id)

    @classmethod
    def check_and_activate_transaction(cls, db: Session, transaction_id: str, user_id: str) -> Transaction:
        transaction = (
            db.query(Transaction)
            .filter(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
                Transaction.status == "in_progress",
            )
            .first()
        )
        if not transaction:
            raise ValueError("Transaction not found or not in valid status for activation")
        if not cls._latest_paid_payment(transaction):
            raise ValueError("Transaction payment is not paid")

        TransactionStatusManager.activate_services(db, transaction_id)
        db.refresh(transaction)
        return transaction

    @staticmethod
    def cancel_transaction_by_user(db: Session, transaction_id: str, user_id: str) -> Transaction:
        transaction = (
            db.query(Transaction).filter(Transaction.id == transaction_id, Transaction.user_id == user_id).first()
        )
        if not transaction:
            raise LookupError("Transaction not found")
        if transaction.status not in OPEN_TRANSACTION_STATUSES:
            raise ValueError(f"Transaction with status {transaction.status} cannot be cancelled")

        return TransactionStatusManager.cancel_transaction(db, transaction_id)

