from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from storefront.domain.payments.gateways.manager import gateway_manager
from storefront.models import Payment, ServicesWhatsappCustomers, Transaction

DUITKU_INQUIRY_RESPONSE = {
    "merchantCode": "D0001",
    "reference": "DS1234",
    "paymentUrl": "https://sandbox.duitku.com/topup/v2/abc",
    "vaNumber": "7007014001234567",
    "amount": "154000",
    "statusCode": "00",
    "statusMessage": "SUCCESS",
}


@pytest.fixture
def duitku_post():
    with patch.object(gateway_manager.get_gateway("duitku"), "_post", AsyncMock()) as mock_post:
        yield mock_post


@pytest.fixture(autouse=True)
def notifications():
    with patch("storefront.domain.payments.router.notify_payment_created", AsyncMock()) as created, patch(
        "storefront.domain.payments.router.notify_payment_success", AsyncMock()
    ) as success, patch("storefront.domain.payments.router.notify_payment_status", AsyncMock()) as status:
        yield {"created": created, "success": success, "status": status}


def create_payment(client, headers, transaction_id, method):
    return client.post(
        "/customer/payment/create",
        json={"transactionId": transaction_id, "paymentMethod": method},
        headers=headers,
    )


class TestPaymentMethods:
    def test_lists_active_methods_with_limits(self, client, customer_headers, manual_method, duitku_method):
        response = client.get("/customer/payment/methods", headers=customer_headers)

        assert response.status_code == 200
        body = response.json()
        methods = {m["code"]: m for m in body["data"]}
        assert methods["duitku_BC"]["limits"] == "Rp 10.000 - Rp 50.000.000"
        assert methods["bank_bca"]["bankDetail"]["accountNumber"] == "1234567890"
        assert body["meta"]["gatewayMethods"] == 1
        assert body["meta"]["manualMethods"] == 1

    def test_only_idr_is_supported(self, client, customer_headers):
        response = client.get("/customer/payment/methods?currency=usd", headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Only IDR currency is supported"

    def test_requires_authentication(self, client):
        response = client.get("/customer/payment/methods")

        assert response.status_code in (401, 403)


class TestCreatePayment:
    def test_manual_transfer(self, client, db, customer, customer_headers, package, manual_method, make_transaction, notifications):
        transaction = make_transaction(customer, package)

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 200
        body = response.json()
        payment = body["data"]["payment"]
        assert payment["status"] == "pending"
        assert payment["gatewayProvider"] == "manual"
        assert payment["isManualPayment"] is True
        assert payment["bankDetails"]["bankName"] == "BCA"
        assert payment["instructions"].startswith("Please transfer exactly Rp 150.000 to:")
        assert body["data"]["pricing"]["finalAmount"] == 150000
        assert "manual approval" in body["message"]
        assert "message" not in body["data"]

        db.expire_all()
        transaction = db.query(Transaction).filter_by(id=transaction.id).one()
        assert transaction.status == "pending"
        assert transaction.payment_method == "bank_bca"
        assert transaction.whatsapp_transaction.status == "pending"
        notifications["created"].assert_called_once_with(payment["id"])

    def test_duitku_payment(self, client, db, customer, customer_headers, package, duitku_method, make_transaction, duitku_post):
        duitku_post.return_value = (200, DUITKU_INQUIRY_RESPONSE)
        transaction = make_transaction(customer, package)

        response = create_payment(client, customer_headers, transaction.id, "duitku_BC")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["payment"]["amount"] == 154000
        assert data["payment"]["externalId"] == "DS1234"
        assert data["payment"]["paymentUrl"] == DUITKU_INQUIRY_RESPONSE["paymentUrl"]
        assert data["pricing"]["serviceFee"]["amount"] == 4000

        endpoint, payload = duitku_post.call_args.args
        assert endpoint == "/v2/inquiry"
        assert payload["paymentAmount"] == 154000
        assert payload["paymentMethod"] == "BC"

        payment = db.query(Payment).filter_by(id=data["payment"]["id"]).one()
        assert payment.gateway_provider == "duitku"
        assert payment.gateway_response["merchantOrderId"].startswith(f"CLIVY-{transaction.id}-")

    def test_gateway_failure_is_reported(self, client, customer, customer_headers, package, duitku_method, make_transaction, duitku_post):
        duitku_post.return_value = (400, {"statusCode": "-100", "statusMessage": "Merchant not found"})
        transaction = make_transaction(customer, package)

        response = create_payment(client, customer_headers, transaction.id, "duitku_BC")

        assert response.status_code == 400
        assert response.json()["detail"] == "Duitku Error: Merchant not found (Code: -100)"

    def test_amount_below_method_minimum(self, client, customer, customer_headers, package, duitku_method, make_transaction, duitku_post):
        transaction = make_transaction(customer, package, total=5000)

        response = create_payment(client, customer_headers, transaction.id, "duitku_BC")

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment amount too low. Minimum: Rp 10.000"
        duitku_post.assert_not_called()

    def test_zero_price_order_is_activated_immediately(self, client, db, customer, customer_headers, package, manual_method, make_transaction, notifications):
        transaction = make_transaction(customer, package, total=0)

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["payment"]["status"] == "paid"
        assert body["message"].startswith("Zero-price payment completed successfully")
        notifications["success"].assert_called_once()

        db.expire_all()
        assert db.query(Transaction).filter_by(id=transaction.id).one().status == "success"
        subscription = db.query(ServicesWhatsappCustomers).filter_by(customer_id=customer.id).one()
        assert subscription.status == "active"

    def test_second_pending_payment_is_rejected(self, client, customer, customer_headers, package, manual_method, make_transaction):
        transaction = make_transaction(customer, package)
        assert create_payment(client, customer_headers, transaction.id, "bank_bca").status_code == 200

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 400
        assert response.json()["detail"] == "Transaction already has a pending payment"

    def test_inactive_method(self, client, db, customer, customer_headers, package, manual_method, make_transaction):
        manual_method.is_active = False
        db.commit()
        transaction = make_transaction(customer, package)

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment method not available"

    def test_expired_transaction(self, client, customer, customer_headers, package, manual_method, make_transaction):
        transaction = make_transaction(customer, package, expires_in=timedelta(minutes=-1))

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot create payment for transaction with status expired"

    def test_other_customers_transaction(self, client, admin, customer_headers, package, manual_method, make_transaction):
        transaction = make_transaction(admin, package)

        response = create_payment(client, customer_headers, transaction.id, "bank_bca")

        assert response.status_code == 404

    def test_blank_fields_are_rejected(self, client, customer_headers):
        response = client.post(
            "/customer/payment/create",
            json={"transactionId": "  ", "paymentMethod": "bank_bca"},
            headers=customer_headers,
        )

        assert response.status_code == 422


class TestPaymentStatus:
    def _manual_payment(self, client, headers, transaction):
        return create_payment(client, headers, transaction.id, "bank_bca").json()["data"]["payment"]["id"]

    def test_customer_status(self, client, customer, customer_headers, package, manual_method, make_transaction):
        payment_id = self._manual_payment(client, customer_headers, make_transaction(customer, package))

        response = client.get(f"/customer/payment/{payment_id}/status", headers=customer_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["payment"]["status"] == "pending"
        assert data["instructions"] == "Transfer exactly Rp 150.000 to the account below:"
        assert data["additionalInfo"]["bankDetails"]["accountName"] == "PT Genfity Digital"
        assert data["statusInfo"]["isPending"] is True
        assert data["items"][0]["category"] == "WhatsApp API Service"

    def test_status_of_another_customer_is_hidden(self, client, customer, customer_headers, admin_headers, package, manual_method, make_transaction):
        payment_id = self._manual_payment(client, customer_headers, make_transaction(customer, package))

        response = client.get(f"/customer/payment/{payment_id}/status", headers=admin_headers)

        assert response.status_code == 404

    def test_public_status(self, client, customer, customer_headers, package, manual_method, make_transaction):
        payment_id = self._manual_payment(client, customer_headers, make_transaction(customer, package))

        response = client.get(f"/public/payment/{payment_id}/status")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["payment"]["id"] == payment_id
        assert "user" not in data["transaction"]

    def test_stale_payment_is_expired_when_read(self, client, db, customer, customer_headers, package, manual_method, make_transaction):
        payment_id = self._manual_payment(client, customer_headers, make_transaction(customer, package))
        payment = db.query(Payment).filter_by(id=payment_id).one()
        payment.expires_at = datetime.utcnow() - timedelta(minutes=1)
        db.commit()

        response = client.get(f"/public/payment/{payment_id}/status")

        assert response.json()["data"]["payment"]["status"] == "expired"

    def test_check_status_applies_gateway_result(self, client, db, customer, customer_headers, package, duitku_method, make_transaction, duitku_post, notifications):
        duitku_post.return_value = (200, DUITKU_INQUIRY_RESPONSE)
        transaction = make_transaction(customer, package)
        payment_id = create_payment(client, customer_headers, transaction.id, "duitku_BC").json()["data"]["payment"]["id"]
        merchant_order_id = db.query(Payment).filter_by(id=payment_id).one().gateway_response["merchantOrderId"]

        duitku_post.return_value = (200, {"merchantOrderId": merchant_order_id, "reference": "DS1234", "statusCode": "00"})
        response = client.post(f"/customer/payment/{payment_id}/check-status", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["data"] == {
            "paymentId": payment_id,
            "status": "paid",
            "previousStatus": "pending",
            "updated": True,
        }
        assert duitku_post.call_args.args[1]["merchantOrderId"] == merchant_order_id
        notifications["success"].assert_called_once_with(payment_id)
        db.expire_all()
        assert db.query(Transaction).filter_by(id=transaction.id).one().status == "success"

    def test_check_status_skips_manual_payments(self, client, customer, customer_headers, package, manual_method, make_transaction, duitku_post):
        payment_id = self._manual_payment(client, customer_headers, make_transaction(customer, package))

        response = client.post(f"/customer/payment/{payment_id}/check-status", headers=customer_headers)

        assert response.json()["data"]["updated"] is False
        duitku_post.assert_not_called()
