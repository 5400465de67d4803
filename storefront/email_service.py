"""
Email Service using Resend
Compiles MJML templates to responsive HTML and sends transactional email
"""

import logging
from datetime import datetime
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import payment_failed_template, payment_success_template
from .shared.formatting import format_idr

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # Newer mjml releases return a result object, older ones a dict or str
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        if html is not None:
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Resend response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    try:
        logger.info(f"📧 Sending email via Resend to: {to}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


def order_number(transaction_id: str) -> str:
    return transaction_id[-8:].upper()


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d %B %Y, %H:%M UTC") if value else "-"


def _item_label(item: dict) -> str:
    name = item["name"]
    if item.get("type") == "whatsapp_service" and item.get("duration"):
        name += " (Monthly)" if item["duration"] == "month" else " (Annual)"
    return name


async def send_payment_success_email(
    to: str,
    customer_name: str,
    transaction_id: str,
    items: list[dict],
    subtotal: float,
    discount_amount: float,
    service_fee_amount: float,
    final_amount: float,
    payment_method_name: str,
    order_date: Optional[datetime],
    payment_date: Optional[datetime],
) -> dict:
    """Send the order confirmation once a payment is paid"""
    rows = [
        {
            "name": _item_label(item),
            "quantity": item.get("quantity", 1),
            "price": format_idr(item.get("price", 0)),
            "total": format_idr(item.get("price", 0) * item.get("quantity", 1)),
        }
        for item in items
    ]

    mjml_content = payment_success_template(
        customer_name=customer_name,
        order_number=order_number(transaction_id),
        items=rows,
        subtotal=format_idr(subtotal),
        discount=format_idr(discount_amount) if discount_amount > 0 else None,
        service_fee=format_idr(service_fee_amount) if service_fee_amount > 0 else None,
        total=format_idr(final_amount),
        payment_method=payment_method_name,
        order_date=_format_date(order_date),
        payment_date=_format_date(payment_date),
    )
    return await send_email(
        to=to,
        subject=f"Payment Confirmation - Order #{order_number(transaction_id)}",
        mjml_content=mjml_content,
    )


async def send_payment_failed_email(
    to: str, customer_name: str, transaction_id: str, amount: float, payment_method_name: str
) -> dict:
    mjml_content = payment_failed_template(
        customer_name=customer_name,
        order_number=order_number(transaction_id),
        amount=format_idr(amount),
        payment_method=payment_method_name,
    )
    return await send_email(
        to=to,
        subject=f"Payment Failed - Order #{order_number(transaction_id)}",
        mjml_content=mjml_content,
    )
