"""
Payment Notification Service
Sends WhatsApp and email notifications for payment lifecycle events
A failing channel is logged and reported, never raised to the caller
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..config import APP_URL
from ..database import session_scope
from ..domain.payments.repository import PaymentMethodRepository, PaymentRepository
from ..email_service import send_payment_failed_email, send_payment_success_email
from ..models import Payment
from ..shared.formatting import format_expiry_countdown, format_number_id
from .whatsapp_service import WhatsAppService, whatsapp_service

logger = logging.getLogger(__name__)


def _item_line(item: dict) -> str:
    line = f"• {item['name']}"
    if item.get("quantity", 1) > 1:
        line += f" ({item['quantity']}x)"
    if item.get("type") == "whatsapp_service" and item.get("duration"):
        line += " - Bulanan" if item["duration"] == "month" else " - Tahunan"
    return line


def _payment_action(data: dict) -> tuple[str, str]:
    """Method line and what the customer has to do next"""
    method = data.get("paymentMethod") or "-"
    lowered = method.lower()
    code = data.get("paymentCode")

    if data.get("qrAvailable"):
        return f"Method: {method} (QRIS)", "Scan QRIS in your payment page."
    if code and ("virtual account" in lowered or "va" in lowered.split()):
        return f"Method: {method}", f"Use This Virtual Account number to transfer.\nVirtual Account number: {code}"
    if code and ("indomaret" in lowered or "alfamart" in lowered):
        return f"Method: {method}", f"Pay at retail outlets with the payment code.\nPayment code: {code}"
    if code:
        return f"Method: {method}", f"Payment code: {code}"
    if data.get("paymentUrl"):
        return f"Method: {method}", "Click the payment link to continue."
    return f"Method: {method}", "See payment instructions on the following page."


class PaymentNotificationService:
    """Builds and sends customer messages for payment events"""

    def __init__(self, whatsapp: Optional[WhatsAppService] = None):
        self.whatsapp = whatsapp or whatsapp_service

    @staticmethod
    def build_payment_created_message(data: dict, now: Optional[datetime] = None) -> str:
        items = "\n".join(_item_line(item) for item in data.get("items", []))
        method_line, action = _payment_action(data)
        expiry = format_expiry_countdown(data.get("expiresAt"), now=now)

        return (
            "*NEW ORDER - GENFITY*\n\n"
            f"Hello {data.get('customerName') or 'Customer'}! 👋\n\n"
            "*ORDER DETAILS:*\n"
            f"{items}\n\n"
            f"*Total: Rp {format_number_id(data.get('amount', 0))}*\n\n"
            "*PAYMENT:*\n"
            f"{method_line}\n"
            f"{action}\n\n"
            f"{expiry}\n\n"
            "*Payment Link:*\n"
            f"{APP_URL}/payment/status/{data['paymentId']}\n\n"
            "Thank you! 🙏"
        )

    @staticmethod
    def build_payment_status_message(status: str, customer_name: str, amount: float) -> Optional[str]:
        """Message for a payment status change, None when the status is not announced"""
        name = customer_name or "Customer"
        total = f"Rp {format_number_id(amount)}"

        if status == "paid":
            return (
                "*PAYMENT SUCCESS - GENFITY*\n\n"
                f"Hello {name}! 🎉\n\n"
                f"Your payment of {total} has been successfully confirmed.\n\n"
                "Your order is being processed and will be activated soon.\n\n"
                "Thank you for your trust! 🙏"
            )
        if status == "failed":
            return (
                "*PAYMENT FAILED - GENFITY*\n\n"
                f"Hello {name},\n\n"
                f"Your payment of {total} could not be processed.\n\n"
                "Please try again or use a different payment method.\n\n"
                "📞 Need help? Contact our customer service."
            )
        if status == "expired":
            return (
                "*PAYMENT EXPIRED - GENFITY*\n\n"
                f"Hello {name},\n\n"
                f"The payment time for the order of {total} has expired.\n\n"
                "You can create a new order at any time.\n\n"
                "Thank you! 🙏"
            )
        if status == "cancelled":
            return (
                "*PAYMENT CANCELLED - GENFITY*\n\n"
                f"Hello {name},\n\n"
                f"Your payment of {total} has been cancelled.\n\n"
                "You can create a new order at any time.\n\n"
                "Thank you! 🙏"
            )
        return None

    @staticmethod
    def build_payment_success_whatsapp_message(customer_name: str) -> str:
        return (
            "*PAYMENT SUCCESS - GENFITY*\n\n"
            f"Hello {customer_name or 'Customer'}!\n\n"
            "Your payment has been confirmed and your order is being processed!\n\n"
            "Thank you for your trust! 🙏"
        )

    async def _send_whatsapp(self, phone: Optional[str], body: str, event: str) -> tuple[bool, Optional[str]]:
        if not phone:
            logger.warning(f"⚠️ No phone number for {event} WhatsApp notification")
            return False, "No phone number"
        try:
            logger.info(f"📱 Sending {event} WhatsApp notification to {phone}")
            result = await self.whatsapp.send_system_message(phone, body)
        except Exception as e:
            logger.error(f"❌ {event} WhatsApp notification crashed: {e}")
            return False, str(e)
        if not result.success:
            logger.error(f"❌ {event} WhatsApp notification failed: {result.error_type} {result.message}")
            return False, result.message
        logger.info(f"✅ {event} WhatsApp notification sent to {phone}")
        return True, None

    async def send_payment_created_notification(self, data: dict) -> bool:
        sent, _ = await self._send_whatsapp(
            data.get("customerPhone"), self.build_payment_created_message(data), "payment created"
        )
        return sent

    async def send_payment_status_notification(
        self, phone: Optional[str], status: str, customer_name: str, amount: float
    ) -> bool:
        body = self.build_payment_status_message(status, customer_name, amount)
        if body is None:
            logger.debug(f"No notification for payment status {status}")
            return False
        sent, _ = await self._send_whatsapp(phone, body, f"payment {status}")
        return sent

    async def send_payment_success_notifications(self, data: dict) -> dict:
        """
        Notify the customer on both channels after a payment is confirmed

        Returns:
            Dict with whatsapp_sent and email_sent status plus per-channel errors
        """
        result = {"whatsapp_sent": False, "email_sent": False, "whatsapp_error": None, "email_error": None}

        result["whatsapp_sent"], result["whatsapp_error"] = await self._send_whatsapp(
            data.get("customerPhone"),
            self.build_payment_success_whatsapp_message(data.get("customerName")),
            "payment success",
        )

        email = data.get("customerEmail")
        if email:
            try:
                logger.info(f"📧 Sending payment confirmation email to {email}")
                await send_payment_success_email(
                    to=email,
                    customer_name=data.get("customerName") or "Customer",
                    transaction_id=data["transactionId"],
                    items=data.get("items", []),
                    subtotal=data.get("subtotal", 0),
                    discount_amount=data.get("discountAmount", 0),
                    service_fee_amount=data.get("serviceFeeAmount", 0),
                    final_amount=data.get("amount", 0),
                    payment_method_name=data.get("paymentMethod") or "-",
                    order_date=data.get("orderDate"),
                    payment_date=data.get("paymentDate"),
                )
                result["email_sent"] = True
                logger.info(f"✅ Payment confirmation email sent to {email}")
            except Exception as e:
                result["email_error"] = str(e)
                logger.error(f"❌ Failed to send payment confirmation email to {email}: {e}")
        else:
            logger.debug("⚠️ No email address for payment success notification")

        return result

    async def send_payment_failed_notifications(self, data: dict) -> dict:
        result = {"whatsapp_sent": False, "email_sent": False, "whatsapp_error": None, "email_error": None}

        body = self.build_payment_status_message("failed", data.get("customerName"), data.get("amount", 0))
        result["whatsapp_sent"], result["whatsapp_error"] = await self._send_whatsapp(
            data.get("customerPhone"), body, "payment failed"
        )

        email = data.get("customerEmail")
        if email:
            try:
                await send_payment_failed_email(
                    to=email,
                    customer_name=data.get("customerName") or "Customer",
                    transaction_id=data["transactionId"],
                    amount=data.get("amount", 0),
                    payment_method_name=data.get("paymentMethod") or "-",
                )
                result["email_sent"] = True
            except Exception as e:
                result["email_error"] = str(e)
                logger.error(f"❌ Failed to send payment failed email to {email}: {e}")

        return result


payment_notification_service = PaymentNotificationService()


def build_notification_items(payment: Payment) -> list[dict]:
    transaction = payment.transaction
    child = transaction.whatsapp_transaction if transaction else None
    if not child or not child.package:
        return []
    package = child.package
    price = package.price_year if child.duration == "year" else package.price_month
    return [
        {
            "type": "whatsapp_service",
            "name": package.name,
            "duration": child.duration,
            "quantity": 1,
            "price": price,
        }
    ]


def build_notification_data(db: Session, payment: Payment) -> dict:
    """Flatten a payment and its order into the payload the senders expect"""
    transaction = payment.transaction
    user = transaction.user
    method = PaymentMethodRepository.get_by_code(db, payment.method)
    gateway_data = payment.gateway_response if isinstance(payment.gateway_response, dict) else {}

    return {
        "paymentId": payment.id,
        "transactionId": transaction.id,
        "customerName": user.name if user else None,
        "customerPhone": user.phone if user else None,
        "customerEmail": user.email if user else None,
        "items": build_notification_items(payment),
        "amount": payment.amount,
        "subtotal": transaction.amount,
        "discountAmount": transaction.discount_amount or 0,
        "serviceFeeAmount": payment.service_fee or 0,
        "paymentMethod": method.name if method else payment.method,
        "paymentCode": gateway_data.get("vaNumber"),
        "paymentUrl": payment.payment_url,
        "qrAvailable": bool(gateway_data.get("qrString")),
        "expiresAt": payment.expires_at,
        "orderDate": transaction.created_at,
        "paymentDate": payment.payment_date,
    }


def _load(payment_id: str) -> Optional[dict]:
    # Background tasks run after the request session is closed
    with session_scope() as db:
        payment = PaymentRepository.get_payment(db, payment_id)
        if not payment:
            logger.warning(f"⚠️ Payment {payment_id} vanished before notification")
            return None
        return build_notification_data(db, payment)


async def notify_payment_created(payment_id: str) -> None:
    data = _load(payment_id)
    if data:
        await payment_notification_service.send_payment_created_notification(data)


async def notify_payment_success(payment_id: str) -> None:
    data = _load(payment_id)
    if data:
        result = await payment_notification_service.send_payment_success_notifications(data)
        logger.info(f"💳 Payment {payment_id} success notifications: {result}")


async def notify_payment_status(payment_id: str, status: str) -> None:
    data = _load(payment_id)
    if not data:
        return
    if status == "failed":
        await payment_notification_service.send_payment_failed_notifications(data)
    else:
        await payment_notification_service.send_payment_status_notification(
            data["customerPhone"], status, data["customerName"], data["amount"]
        )
