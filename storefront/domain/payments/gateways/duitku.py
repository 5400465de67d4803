"""Duitku payment gateway - Integration with the Duitku merchant API"""

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
from sqlalchemy.orm import Session

from ....config import (
    APP_URL,
    DUITKU_API_KEY,
    DUITKU_BASE_URL,
    DUITKU_CALLBACK_URL,
    DUITKU_MERCHANT_CODE,
    DUITKU_OVO_CREDENTIAL_CODE,
    DUITKU_RETURN_URL,
    DUITKU_SHOPEEPAY_CREDENTIAL_CODE,
)
from ....models import PaymentMethod
from ....webhook_security import md5_hex, sha256_hex, verify_duitku_callback
from ..limits import clean_gateway_code, validate_payment_amount
from .base import PaymentCallback, PaymentGateway, PaymentGatewayError, PaymentRequest, PaymentResponse

logger = logging.getLogger(__name__)

MERCHANT_ORDER_PREFIX = "CLIVY-"

# Minutes before a Duitku payment lapses, per gateway code
EXPIRY_MINUTES = {
    "VC": 30,
    **{code: 1440 for code in ("BC", "M2", "VA", "I1", "B1", "BT", "A1", "AG", "NC", "BR", "S1", "DM", "BV")},
    "FT": 1440,
    "IR": 1440,
    "OV": 1440,
    "SA": 60,
    "LF": 1440,
    "LA": 1440,
    "DA": 1440,
    "SL": 30,
    "OL": 15,
    "JP": 10,
    "SP": 60,
    "NQ": 1440,
    "GQ": 60,
    "SQ": 60,
    "DN": 1440,
    "AT": 720,
}
DEFAULT_EXPIRY_MINUTES = 1440

METHOD_TYPES = {
    "VC": "credit_card",
    **{
        code: "virtual_account"
        for code in ("BC", "M2", "VA", "I1", "B1", "BT", "A1", "AG", "NC", "BR", "S1", "DM", "BV")
    },
    "FT": "retail",
    "IR": "retail",
    **{code: "e_wallet" for code in ("OV", "SA", "LF", "LA", "DA", "SL", "OL", "JP")},
    **{code: "qris" for code in ("SP", "NQ", "GQ", "SQ")},
    "DN": "paylater",
    "AT": "paylater",
}

# Status codes returned by transactionStatus
STATUS_CODES = {"00": "paid", "01": "pending", "02": "failed"}

_IMAGE_BASE = "https://images.duitku.com/hotlink-ok"

# Methods created by "create defaults", with display names and logos
DEFAULT_METHODS = {
    "VC": {"name": "CREDIT CARD", "description": "Kartu Kredit", "image": f"{_IMAGE_BASE}/VC.PNG"},
    "BC": {"name": "BCA VA", "description": "Virtual Account BCA", "image": f"{_IMAGE_BASE}/BCA.SVG"},
    "M2": {"name": "MANDIRI VA H2H", "description": "Virtual Account Mandiri", "image": f"{_IMAGE_BASE}/MV.PNG"},
    "VA": {"name": "MAYBANK VA", "description": "Virtual Account Maybank", "image": f"{_IMAGE_BASE}/VA.PNG"},
    "I1": {"name": "BNI VA", "description": "Virtual Account BNI", "image": f"{_IMAGE_BASE}/I1.PNG"},
    "B1": {"name": "CIMB NIAGA VA", "description": "Virtual Account CIMB Niaga", "image": f"{_IMAGE_BASE}/B1.PNG"},
    "BT": {"name": "PERMATA VA", "description": "Virtual Account Permata", "image": f"{_IMAGE_BASE}/PERMATA.PNG"},
    "BV": {"name": "BSI VA", "description": "Virtual Account BSI", "image": f"{_IMAGE_BASE}/BSI.PNG"},
    "A1": {"name": "ATM BERSAMA VA", "description": "ATM Bersama", "image": f"{_IMAGE_BASE}/A1.PNG"},
    "IR": {"name": "INDOMARET", "description": "Indomaret", "image": f"{_IMAGE_BASE}/IR.PNG"},
    "FT": {"name": "ALFAMART GROUP", "description": "Alfamart Group", "image": f"{_IMAGE_BASE}/FT.PNG"},
    "SA": {"name": "SHOPEEPAY APP", "description": "ShopeePay Apps", "image": f"{_IMAGE_BASE}/SHOPEEPAY.PNG"},
    "NQ": {"name": "NOBU QRIS", "description": "Nobu QRIS", "image": f"{_IMAGE_BASE}/NQ.PNG"},
}

RETAIL_INSTRUCTIONS = {
    "IR": """Instruksi Pembayaran Indomaret:

1. Catat dan simpan Kode Pembayaran Anda
2. Datang ke Gerai retail Indomaret / Ceriamart / Lion Super Indo
3. Informasikan kepada kasir akan melakukan "Pembayaran Genfity"
4. Apabila kasir mengatakan tidak melayani pembayaran untuk "Genfity", informasikan bahwa pembayaran ini merupakan Payment Point pada Kategori "e-Commerce"
5. Tunjukkan dan berikan Kode Pembayaran ke Kasir
6. Lakukan pembayaran sesuai nominal yang diinformasikan dan tunggu proses selesai
7. Minta dan simpan struk sebagai bukti pembayaran
8. Pembayaran Anda akan langsung terdeteksi secara otomatis""",
    "FT": """Instruksi Pembayaran Alfamart Group:

1. Catat dan simpan Kode Pembayaran Anda
2. Datang ke Gerai retail (Alfamart, Kantor Pos, Pegadaian, & Dan-Dan)
3. Informasikan kepada kasir akan melakukan "Pembayaran Telkom/Indihome/Finpay"
4. Jika kasir menanyakan jenis pembayaran Telkom, pilih pembayaran untuk "Telepon Rumah" atau "Indihome atau Finpay"
5. Tunjukkan dan berikan Kode Pembayaran ke Kasir
6. Lakukan pembayaran sesuai nominal yang diinformasikan dan tunggu proses selesai
7. Minta dan simpan struk sebagai bukti pembayaran
8. Pembayaran Anda akan langsung terdeteksi secara otomatis""",
}

# Sandbox credentials published in the Duitku documentation
_SANDBOX_SHOPEEPAY_CREDENTIAL = "7cXXXXX-XXXX-XXXX-9XXX-944XXXXXXX8"
_SANDBOX_OVO_CREDENTIAL = "A0F22572-4AF1-E111-812C-B01224449936"


def get_expiry_minutes(gateway_code: str) -> int:
    return EXPIRY_MINUTES.get(clean_gateway_code(gateway_code), DEFAULT_EXPIRY_MINUTES)


def get_method_type(gateway_code: str) -> str:
    return METHOD_TYPES.get(gateway_code, "other")


def get_method_currency(gateway_code: str) -> str:
    # Credit cards settle in any currency
    return "any" if gateway_code == "VC" else "idr"


def build_merchant_order_id(transaction_id: str, timestamp_ms: Optional[int] = None) -> str:
    return f"{MERCHANT_ORDER_PREFIX}{transaction_id}-{timestamp_ms or int(time.time() * 1000)}"


def parse_transaction_id(merchant_order_id: str) -> Optional[str]:
    """Recover our transaction id from CLIVY-{transactionId}-{timestamp}"""
    if not merchant_order_id or not merchant_order_id.startswith(MERCHANT_ORDER_PREFIX):
        return None
    body = merchant_order_id[len(MERCHANT_ORDER_PREFIX) :]
    transaction_id, sep, timestamp = body.rpartition("-")
    if not sep or not transaction_id or not timestamp.isdigit():
        return None
    return transaction_id


def map_callback_result(result_code: Optional[str]) -> str:
    """Callback resultCode to payment status"""
    if result_code == "00":
        return "paid"
    if result_code == "01":
        return "pending"
    if result_code == "02":
        return "expired"
    return "failed"


class DuitkuGateway(PaymentGateway):
    """Service for Duitku merchant API operations"""

    provider = "duitku"

    def __init__(
        self,
        merchant_code: Optional[str] = DUITKU_MERCHANT_CODE,
        api_key: Optional[str] = DUITKU_API_KEY,
        base_url: str = DUITKU_BASE_URL,
        callback_url: Optional[str] = DUITKU_CALLBACK_URL,
        return_url: Optional[str] = DUITKU_RETURN_URL,
    ):
        self.merchant_code = merchant_code or ""
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.callback_url = callback_url or f"{APP_URL}/api/public/duitku/callback"
        self.return_url = return_url or f"{APP_URL}/api/public/duitku/return"
        self.is_production = "sandbox" not in self.base_url

        if not self.is_configured():
            logger.warning("DUITKU_MERCHANT_CODE / DUITKU_API_KEY not set; Duitku payments will fail until configured")
        else:
            logger.info(f"Duitku gateway initialized (production={self.is_production})")

    def is_configured(self) -> bool:
        return bool(self.merchant_code and self.api_key)

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def transaction_signature(self, merchant_order_id: str, payment_amount: int) -> str:
        return md5_hex(self.merchant_code, merchant_order_id, payment_amount, self.api_key)

    def payment_method_signature(self, payment_amount: int, request_datetime: str) -> str:
        return sha256_hex(self.merchant_code, payment_amount, request_datetime, self.api_key)

    def status_signature(self, merchant_order_id: str) -> str:
        return md5_hex(self.merchant_code, merchant_order_id, self.api_key)

    def verify_callback_signature(self, data: dict[str, Any]) -> bool:
        required = ("merchantCode", "amount", "merchantOrderId", "signature")
        if not all(data.get(field) for field in required):
            return False
        if str(data["merchantCode"]) != self.merchant_code:
            return False
        return verify_duitku_callback(
            merchant_code=self.merchant_code,
            amount=str(data["amount"]),
            merchant_order_id=str(data["merchantOrderId"]),
            signature=str(data["signature"]),
            api_key=self.api_key,
        )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        """POST JSON to Duitku and return (status_code, body)"""
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{self.base_url}{endpoint}",
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        try:
            body = response.json()
        except ValueError:
            body = {"statusMessage": response.text}
        return response.status_code, body

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _account_link(self, gateway_code: str, payment_amount: int) -> Optional[dict[str, Any]]:
        """Extra payload for account-linked e-wallets"""
        if gateway_code == "SL":
            credential = DUITKU_SHOPEEPAY_CREDENTIAL_CODE or ("" if self.is_production else _SANDBOX_SHOPEEPAY_CREDENTIAL)
            if not credential:
                raise PaymentGatewayError(
                    "Shopee Pay Account Link is not available. Please contact administrator to configure DUITKU_SHOPEEPAY_CREDENTIAL_CODE."
                )
            return {"credentialCode": credential, "shopee": {"useCoin": False, "promoId": ""}}

        if gateway_code == "OL":
            credential = DUITKU_OVO_CREDENTIAL_CODE or ("" if self.is_production else _SANDBOX_OVO_CREDENTIAL)
            if not credential:
                raise PaymentGatewayError(
                    "OVO Account Link is not available. Please contact administrator to configure DUITKU_OVO_CREDENTIAL_CODE."
                )
            return {
                "credentialCode": credential,
                "ovo": {"paymentDetails": [{"paymentType": "CASH", "amount": str(payment_amount)}]},
            }
        return None

    def build_inquiry_payload(self, request: PaymentRequest, merchant_order_id: str) -> dict[str, Any]:
        gateway_code = clean_gateway_code(request.payment_method_code)
        payment_amount = int(round(request.amount))
        product_details = request.description or f"Genfity Services - Transaction {request.transaction_id}"

        name_parts = request.customer.name.strip().split(" ")
        first_name = name_parts[0] or "Customer"
        last_name = " ".join(name_parts[1:]) or "Genfity"
        phone = request.customer.phone or ""
        address = {
            "firstName": first_name,
            "lastName": last_name,
            "address": "Default Address",
            "city": "Jakarta",
            "postalCode": "12345",
            "phone": phone,
            "countryCode": "ID",
        }

        payload = {
            "merchantCode": self.merchant_code,
            "paymentAmount": payment_amount,
            "paymentMethod": gateway_code,
            "merchantOrderId": merchant_order_id,
            "productDetails": product_details,
            "customerVaName": request.customer.name[:20],
            "email": request.customer.email,
            "phoneNumber": phone,
            "callbackUrl": self.callback_url,
            "returnUrl": self.return_url,
            "signature": self.transaction_signature(merchant_order_id, payment_amount),
            "expiryPeriod": get_expiry_minutes(gateway_code),
            "customerDetail": {
                "firstName": first_name,
                "lastName": last_name,
                "email": request.customer.email,
                "phoneNumber": phone,
                "billingAddress": address,
                "shippingAddress": dict(address),
            },
            "itemDetails": [{"name": product_details, "price": payment_amount, "quantity": 1}],
        }

        account_link = self._account_link(gateway_code, payment_amount)
        if account_link:
            payload["accountLink"] = account_link
        return payload

    async def create_payment(self, request: PaymentRequest) -> PaymentResponse:
        if not self.is_configured():
            return PaymentResponse(success=False, status="failed", error="Duitku gateway is not configured")

        gateway_code = clean_gateway_code(request.payment_method_code)
        validation = validate_payment_amount(request.amount, gateway_code, is_gateway_method=True)
        if not validation["valid"]:
            return PaymentResponse(success=False, status="failed", error=validation["message"])

        merchant_order_id = build_merchant_order_id(request.transaction_id)
        try:
            payload = self.build_inquiry_payload(request, merchant_order_id)
        except PaymentGatewayError as e:
            return PaymentResponse(success=False, status="failed", error=e.message)

        logger.info(
            f"💳 Creating Duitku payment: order={merchant_order_id}, method={gateway_code}, amount={payload['paymentAmount']}"
        )

        try:
            http_status, data = await self._post("/v2/inquiry", payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Duitku inquiry request failed for {merchant_order_id}: {e}")
            return PaymentResponse(success=False, status="failed", error="Unable to reach payment gateway")

        if http_status < 400 and data.get("statusCode") == "00":
            expires_at = datetime.utcnow() + timedelta(minutes=get_expiry_minutes(gateway_code))
            logger.info(f"✅ Duitku payment created: order={merchant_order_id}, reference={data.get('reference')}")
            return PaymentResponse(
                success=True,
                payment_id=merchant_order_id,
                status="pending",
                external_id=data.get("reference"),
                payment_url=data.get("paymentUrl"),
                expires_at=expires_at,
                gateway_response={
                    "merchantCode": data.get("merchantCode"),
                    "merchantOrderId": merchant_order_id,
                    "reference": data.get("reference"),
                    "paymentUrl": data.get("paymentUrl"),
                    "vaNumber": data.get("vaNumber"),
                    "qrString": data.get("qrString"),
                    "amount": data.get("amount"),
                    "statusCode": data.get("statusCode"),
                    "statusMessage": data.get("statusMessage"),
                },
            )

        message = data.get("statusMessage") or data.get("responseMessage") or data.get("Message") or "Payment creation failed"
        logger.error(f"❌ Duitku inquiry rejected for {merchant_order_id}: {message} (HTTP {http_status})")

        if "Maximum Payment exceeded" in message or "maximum" in message:
            error = (
                "Payment amount exceeds the maximum limit for this payment method. "
                "Please choose a different payment method or reduce your order amount."
            )
        elif "Failed to generate" in message and http_status >= 500:
            error = (
                "This payment method is temporarily unavailable due to technical issues. "
                "Please choose a different payment method such as Bank Transfer or Virtual Account options."
            )
        else:
            error = f"Duitku Error: {message} (Code: {data.get('statusCode') or http_status})"
        return PaymentResponse(success=False, status="failed", error=error)

    async def check_payment_status(self, external_id: str) -> PaymentResponse:
        """Query transactionStatus; external_id is our merchantOrderId"""
        payload = {
            "merchantCode": self.merchant_code,
            "merchantOrderId": external_id,
            "signature": self.status_signature(external_id),
        }
        try:
            http_status, data = await self._post("/transactionStatus", payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Duitku status check failed for {external_id}: {e}")
            return PaymentResponse(success=False, payment_id=external_id, status="failed", error=str(e))

        if http_status >= 400:
            return PaymentResponse(
                success=False,
                payment_id=external_id,
                status="failed",
                error=data.get("statusMessage") or "Status check failed",
            )

        return PaymentResponse(
            success=True,
            payment_id=data.get("merchantOrderId") or external_id,
            status=STATUS_CODES.get(data.get("statusCode"), "failed"),
            external_id=data.get("reference"),
            gateway_response=data,
        )

    async def process_callback(self, data: dict[str, Any]) -> PaymentCallback:
        if not self.verify_callback_signature(data):
            raise PaymentGatewayError("Invalid signature")

        merchant_order_id = data["merchantOrderId"]
        transaction_id = parse_transaction_id(merchant_order_id)
        if not transaction_id:
            raise PaymentGatewayError("Invalid order ID format")

        return PaymentCallback(
            gateway_provider=self.provider,
            external_id=data.get("reference"),
            merchant_order_id=merchant_order_id,
            transaction_id=transaction_id,
            status=map_callback_result(data.get("resultCode")),
            amount=float(data["amount"]),
            payment_date=datetime.utcnow(),
            raw_data=dict(data),
        )

    # ------------------------------------------------------------------
    # Payment method catalogue
    # ------------------------------------------------------------------

    async def get_payment_methods(self, amount: int = 10000) -> list[dict[str, Any]]:
        """Methods enabled on the merchant account"""
        if not self.is_configured():
            return []

        request_datetime = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S")
        payload = {
            "merchantcode": self.merchant_code,
            "amount": amount,
            "datetime": request_datetime,
            "signature": self.payment_method_signature(amount, request_datetime),
        }
        try:
            http_status, data = await self._post("/paymentmethod/getpaymentmethod", payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to fetch Duitku payment methods: {e}")
            return []

        fees = data.get("paymentFee")
        if http_status >= 400 or data.get("responseCode") != "00" or not isinstance(fees, list):
            logger.warning(f"⚠️ Duitku payment method list unavailable: {data.get('responseMessage')}")
            return []

        return [
            {
                "code": method.get("paymentMethod"),
                "name": method.get("paymentName"),
                "type": get_method_type(method.get("paymentMethod")),
                "currency": get_method_currency(method.get("paymentMethod")),
                "image": method.get("paymentImage"),
                "fee": method.get("totalFee"),
            }
            for method in fees
            if method.get("paymentMethod")
        ]

    async def sync_payment_methods(self, db: Session) -> dict:
        """Upsert duitku_{code} rows for every method the merchant has enabled"""
        methods = await self.get_payment_methods()
        created = updated = 0

        for method in methods:
            code = method["code"]
            row = db.query(PaymentMethod).filter(PaymentMethod.code == f"duitku_{code}").first()
            if row:
                updated += 1
            else:
                row = PaymentMethod(
                    code=f"duitku_{code}",
                    gateway_provider=self.provider,
                    gateway_code=code,
                    is_gateway_method=True,
                )
                db.add(row)
                created += 1
            row.name = method["name"] or code
            row.description = method["name"]
            row.type = method["type"]
            row.currency = method["currency"]
            row.gateway_image_url = method.get("image") or row.gateway_image_url
            row.is_active = True

        db.commit()
        logger.info(f"✅ Duitku sync complete: {created} created, {updated} updated")
        return {"total": len(methods), "created": created, "updated": updated}

    def create_default_payment_methods(self, db: Session) -> dict:
        """Upsert the built-in Duitku method catalogue"""
        created = updated = 0

        for code, info in DEFAULT_METHODS.items():
            instructions = RETAIL_INSTRUCTIONS.get(code)
            row = db.query(PaymentMethod).filter(PaymentMethod.code == f"duitku_{code}").first()
            if row:
                updated += 1
            else:
                row = PaymentMethod(
                    code=f"duitku_{code}",
                    description=info["description"],
                    gateway_provider=self.provider,
                    gateway_code=code,
                    is_gateway_method=True,
                )
                db.add(row)
                created += 1
            row.name = info["name"]
            row.type = get_method_type(code)
            row.currency = get_method_currency(code)
            row.gateway_image_url = info["image"]
            row.is_active = True
            if instructions:
                row.payment_instructions = instructions
                row.instruction_type = "text"

        db.commit()
        logger.info(f"✅ Default Duitku methods ready: {created} created, {updated} updated")
        return {"total": len(DEFAULT_METHODS), "created": created, "updated": updated}
