"""Transaction status manager - Moves orders through their lifecycle and activates services"""

import calendar
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    Payment,
    ServicesWhatsappCustomers,
    Transaction,
    TransactionWhatsappService,
)

logger = logging.getLogger(__name__)

VALID_TRANSITIONS = {
    "created": {"pending", "cancelled", "expired"},
    "pending": {"in_progress", "cancelled", "expired"},
    "in_progress": {"success", "cancelled"},
    "success": set(),
    "cancelled": set(),
    "expired": set(),
}

STATUS_TEXT = {
    "created": "Waiting for Payment Method",
    "pending": "Waiting for Payment",
    "in_progress": "Processing",
    "success": "Completed",
    "cancelled": "Cancelled",
    "expired": "Expired",
}

WHATSAPP_STATUS_TEXT = {
    "created": "Order Created",
    "pending": "Awaiting Payment",
    "in_progress": "Activating Service",
    "success": "Service Active",
    "failed": "Activation Failed",
    "cancelled": "Cancelled",
}


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months, clamping to the last day of the target month"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def add_duration(start: datetime, duration: str) -> datetime:
    return add_months(start, 12 if duration == "year" else 1)


class TransactionStatusManager:
    """Lifecycle rules shared by checkout, payments, callbacks and admin approval"""

    @staticmethod
    def is_valid_transition(from_status: str, to_status: str) -> bool:
        return to_status in VALID_TRANSITIONS.get(from_status, set())

    @staticmethod
    def get_status_text(status: Optional[str]) -> str:
        return STATUS_TEXT.get(status, status or "Unknown")

    @staticmethod
    def get_whatsapp_status_text(status: Optional[str]) -> str:
        return WHATSAPP_STATUS_TEXT.get(status, status or "Unknown")

    @staticmethod
    def _get_transaction(db: Session, transaction_id: str) -> Optional[Transaction]:
        return db.query(Transaction).filter(Transaction.id == transaction_id).first()

    @classmethod
    def update_transaction_on_payment_creation(cls, db: Session, transaction_id: str) -> None:
        transaction = cls._get_transaction(db, transaction_id)
        if not transaction:
            raise ValueError(f"Transaction {transaction_id} not found")

        transaction.status = "pending"
        if transaction.whatsapp_transaction:
            transaction.whatsapp_transaction.status = "pending"
        db.commit()
        logger.info(f"💳 Transaction {transaction_id} is awaiting payment")

    @classmethod
    def update_transaction_on_payment(cls, db: Session, transaction_id: str, payment_status: str) -> None:
        """Propagate a payment outcome to its transaction"""
        transaction = cls._get_transaction(db, transaction_id)
        if not transaction:
            raise ValueError(f"Transaction {transaction_id} not found")

        if payment_status == "paid":
            transaction.status = "in_progress"
            transaction.expires_at = None
            if transaction.whatsapp_transaction and transaction.whatsapp_transaction.status != "success":
                transaction.whatsapp_transaction.status = "in_progress"
            db.commit()

            if transaction.whatsapp_transaction:
                logger.info(f"📱 Transaction {transaction_id} has a WhatsApp package, activating service")
                cls.activate_services(db, transaction_id)
            return

        if payment_status in ("failed", "expired"):
            if cls.is_valid_transition(transaction.status, "expired"):
                transaction.status = "expired"
                transaction.expires_at = None
                db.commit()
                logger.info(f"⚠️ Transaction {transaction_id} expired after payment {payment_status}")
            return

        if payment_status == "cancelled":
            if transaction.status in ("created", "pending"):
                transaction.status = "cancelled"
                transaction.expires_at = None
                if transaction.whatsapp_transaction:
                    transaction.whatsapp_transaction.status = "cancelled"
                db.commit()
                logger.info(f"🚫 Transaction {transaction_id} cancelled with its payment")

    @classmethod
    def activate_services(cls, db: Session, transaction_id: str) -> Optional[ServicesWhatsappCustomers]:
        """Create or extend the customer's WhatsApp subscription for a paid order"""
        transaction = cls._get_transaction(db, transaction_id)
        if not transaction or not transaction.whatsapp_transaction:
            logger.info(f"Transaction {transaction_id} has no WhatsApp component, skipping activation")
            return None

        child = transaction.whatsapp_transaction
        if child.status == "success":
            logger.info(f"Transaction {transaction_id} already activated, skipping")
            return None

        user_id = transaction.user_id
        package_id = child.package_id
        now = datetime.utcnow()

        try:
            subscription = (
                db.query(ServicesWhatsappCustomers)
                .filter(
                    ServicesWhatsappCustomers.customer_id == user_id,
                    ServicesWhatsappCustomers.package_id == package_id,
                )
                .first()
            )

            if subscription:
                # Remaining time carries over when renewing early
                base_date = subscription.expired_at if subscription.expired_at > now else now
                subscription.expired_at = add_duration(base_date, child.duration)
                subscription.status = "active"
                subscription.last_subscription_at = now
                logger.info(f"📱 Extended subscription for user {user_id} until {subscription.expired_at}")
            else:
                subscription = ServicesWhatsappCustomers(
                    customer_id=user_id,
                    package_id=package_id,
                    status="active",
                    expired_at=add_duration(now, child.duration),
                    activated_at=now,
                    last_subscription_at=now,
                )
                db.add(subscription)
                logger.info(f"📱 Created subscription for user {user_id}, package {package_id}")

            child.status = "success"
            child.start_date = now
            child.end_date = subscription.expired_at
            db.commit()
            logger.info(f"✅ WhatsApp service activated for transaction {transaction_id}")

            cls.check_and_update_main_transaction_status(db, transaction_id)
            return subscription
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Error activating WhatsApp service for transaction {transaction_id}: {e}")
            child = db.query(TransactionWhatsappService).filter(TransactionWhatsappService.id == child.id).first()
            if child:
                child.status = "failed"
                db.commit()
            raise

    @classmethod
    def check_and_update_main_transaction_status(cls, db: Session, transaction_id: str) -> bool:
        """Mark the order successful once every item is delivered"""
        transaction = cls._get_transaction(db, transaction_id)
        if not transaction:
            return False

        child = transaction.whatsapp_transaction
        if child and child.status == "success":
            transaction.status = "success"
            transaction.expires_at = None
            db.commit()
            logger.info(f"✅ Transaction {transaction_id} completed")
            return True

        logger.info(f"Transaction {transaction_id} not yet complete (item status: {child.status if child else None})")
        return False

    @classmethod
    def cancel_transaction(cls, db: Session, transaction_id: str) -> Transaction:
        transaction = cls._get_transaction(db, transaction_id)
        if not transaction:
            raise ValueError(f"Transaction {transaction_id} not found")

        transaction.status = "cancelled"
        transaction.expires_at = None
        if transaction.whatsapp_transaction:
            transaction.whatsapp_transaction.status = "cancelled"

        pending_payments = (
            db.query(Payment).filter(Payment.transaction_id == transaction_id, Payment.status == "pending").all()
        )
        for payment in pending_payments:
            payment.status = "cancelled"
            payment.expires_at = None

        db.commit()
        logger.info(f"🚫 Cancelled transaction {transaction_id} and {len(pending_payments)} pending payment(s)")
        return transaction
