"""Customer-facing payment instructions and display blocks"""

from typing import Optional

from ...models import BankDetail, Payment, PaymentMethod
from ...shared.formatting import format_idr
from .fees import describe_service_fee
from .gateways.duitku import RETAIL_INSTRUCTIONS
from .limits import clean_gateway_code

RETAIL_CODES = ("IR", "FT")


def serialize_bank_detail(bank_detail: Optional[BankDetail], currency: Optional[str] = None) -> Optional[dict]:
    if not bank_detail:
        return None
    data = {
        "bankName": bank_detail.bank_name,
        "accountNumber": bank_detail.account_number,
        "accountName": bank_detail.account_name,
        "swiftCode": bank_detail.swift_code or "",
    }
    if currency:
        data["currency"] = currency
    return data


def serialize_payment_method(method: PaymentMethod) -> dict:
    """Payment method as offered to customers"""
    return {
        "code": method.code,
        "name": method.name,
        "description": method.description,
        "type": method.type,
        "isActive": method.is_active,
        "isGatewayMethod": method.is_gateway_method,
        "gatewayProvider": method.gateway_provider,
        "requiresManualApproval": method.requires_manual_approval,
        "serviceFee": describe_service_fee(method),
        "bankDetail": serialize_bank_detail(method.bank_detail),
        "paymentInstructions": method.payment_instructions,
        "instructionType": method.instruction_type,
        "instructionImageUrl": method.instruction_image_url,
        "gatewayImageUrl": method.gateway_image_url,
    }


def is_manual_method(method: PaymentMethod) -> bool:
    return not method.is_gateway_method or bool(method.requires_manual_approval)


def build_creation_instructions(method: PaymentMethod, payment: Payment) -> str:
    """Instructions returned right after a payment is opened"""
    amount = format_idr(payment.amount)

    if is_manual_method(method):
        bank = method.bank_detail
        if bank:
            swift = f"SWIFT: {bank.swift_code}\n" if bank.swift_code else ""
            return (
                f"Please transfer exactly {amount} to:\n"
                f"Bank: {bank.bank_name}\n"
                f"Account: {bank.account_number}\n"
                f"Name: {bank.account_name}\n"
                f"{swift}"
                f"Reference: Payment {payment.id}\n\n"
                "After transfer, admin will verify and approve your payment within 1-24 hours."
            )
        return (
            f"Please complete payment of {amount} using {method.name}. "
            "This payment requires manual verification by admin. Processing time: 1-24 hours."
        )

    if payment.payment_url:
        return (
            f"Click the payment link to complete your {amount} payment using {method.name}. "
            "Payment will be processed automatically."
        )

    code = clean_gateway_code(method.code or "")
    if code in RETAIL_CODES:
        return RETAIL_INSTRUCTIONS[code]
    return f"Complete payment of {amount} using {method.name}. Payment will be processed automatically once completed."


def _is_retail(payment: Payment) -> bool:
    method = (payment.method or "").lower()
    return (
        clean_gateway_code(payment.method or "") in RETAIL_CODES
        or "alfamart" in method
        or "indomaret" in method
    )


def build_status_instructions(payment: Payment, method: Optional[PaymentMethod], currency: str) -> tuple[str, dict]:
    """Instructions and additionalInfo for the payment status page"""
    if method and method.bank_detail:
        return (
            f"Transfer exactly {format_idr(payment.amount)} to the account below:",
            {
                "bankDetails": serialize_bank_detail(method.bank_detail, currency),
                "note": "Please transfer the exact amount and send payment proof to admin.",
                "steps": [
                    "Login to your internet banking or visit ATM",
                    "Transfer to the account details above",
                    "Use the exact amount shown",
                    "Keep your transfer receipt",
                    "Payment will be verified by admin within 1-24 hours",
                ],
            },
        )

    gateway_data = payment.gateway_response if isinstance(payment.gateway_response, dict) else None
    if gateway_data is None:
        return (
            "Please complete your payment using the selected method.",
            {"note": "Please contact support if you need assistance with payment", "steps": []},
        )

    payment_url = payment.payment_url or gateway_data.get("paymentUrl")

    if gateway_data.get("qrString"):
        return (
            "Scan the QR code below with your mobile banking app or e-wallet:",
            {
                "paymentType": "qris",
                "qrString": gateway_data["qrString"],
                "vaNumber": None,
                "paymentUrl": payment_url,
                "note": "Scan QR code with mobile banking app or e-wallet (OVO, DANA, GoPay, ShopeePay, etc.)",
                "steps": [
                    "Open your mobile banking app or e-wallet",
                    'Choose "Scan QR" or "Pay with QR"',
                    "Scan the QR code shown",
                    "Confirm the payment amount",
                    "Complete the payment process",
                ],
            },
        )

    if gateway_data.get("vaNumber"):
        if _is_retail(payment):
            outlet = method.name if method else "retail"
            return (
                f"Complete payment at {outlet} outlets:",
                {
                    "paymentType": "retail",
                    "qrString": None,
                    "vaNumber": gateway_data["vaNumber"],
                    "paymentUrl": payment_url,
                    "note": "Visit the retail outlet to complete payment",
                    "steps": [
                        "Visit the nearest retail outlet",
                        "Provide the payment code to the cashier",
                        "Pay the exact amount in cash",
                        "Keep your receipt for verification",
                    ],
                },
            )
        return (
            "Use the Virtual Account number below to complete payment:",
            {
                "paymentType": "virtual_account",
                "qrString": None,
                "vaNumber": gateway_data["vaNumber"],
                "paymentUrl": payment_url,
                "note": "Transfer to Virtual Account number via ATM, internet banking, or mobile banking",
                "steps": [
                    "Login to your internet banking or mobile banking",
                    'Choose "Transfer" menu',
                    "Enter the Virtual Account number above",
                    "Enter the exact payment amount",
                    "Confirm and complete the transfer",
                ],
            },
        )

    if payment_url:
        return (
            "Click the payment link below to complete your payment:",
            {
                "paymentType": "gateway_url",
                "qrString": None,
                "vaNumber": None,
                "paymentUrl": payment_url,
                "note": "You will be redirected to secure payment page",
                "steps": [
                    "Click the payment button below",
                    "You will be redirected to secure payment page",
                    "Choose your preferred payment method",
                    "Complete the payment process",
                    "Return to this page to check payment status",
                ],
            },
        )

    return (
        "Please complete your payment using the selected method.",
        {
            "paymentType": "gateway_other",
            "qrString": None,
            "vaNumber": None,
            "paymentUrl": payment.payment_url,
            "note": "Follow the payment instructions for your selected method",
            "steps": [],
        },
    )


def build_status_info(status: str) -> dict:
    if status == "pending":
        next_action = "Complete payment"
    elif status == "paid":
        next_action = "Payment completed"
    else:
        next_action = "Contact support if needed"
    return {
        "isPending": status == "pending",
        "isCompleted": status == "paid",
        "isFailed": status == "failed",
        "isCancelled": status == "cancelled",
        "canCancel": status == "pending",
        "nextAction": next_action,
    }
