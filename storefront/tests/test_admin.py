from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from storefront.domain.payments.gateways.manager import gateway_manager
from storefront.models import BankDetail, Payment, PaymentMethod


def method_payload(**overrides):
    payload = {
        "code": "bank_mandiri",
        "name": "Transfer Mandiri",
        "type": "manual_transfer",
        "requiresManualApproval": True,
        "feeType": "fixed",
        "feeValue": 2500,
    }
    payload.update(overrides)
    return payload


class TestPaymentMethods:
    def test_list_includes_admin_fields(self, client, admin_headers, manual_method, duitku_method):
        response = client.get("/admin/payment-methods", headers=admin_headers)

        methods = {m["code"]: m for m in response.json()["data"]}
        assert methods["duitku_BC"]["gatewayCode"] == "BC"
        assert methods["bank_bca"]["bankDetail"]["accountNumber"] == "1234567890"
        assert methods["bank_bca"]["bankDetailId"] == manual_method.bank_detail_id

    def test_create(self, client, admin_headers, bank_detail):
        response = client.post(
            "/admin/payment-methods", json=method_payload(bankDetailId=bank_detail.id), headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["code"] == "bank_mandiri"
        assert data["feeValue"] == 2500
        assert data["bankDetail"]["bankName"] == "BCA"

    def test_create_duplicate_code(self, client, admin_headers, manual_method):
        response = client.post("/admin/payment-methods", json=method_payload(code="bank_bca"), headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment method with code bank_bca already exists"

    def test_create_with_unknown_bank_detail(self, client, admin_headers):
        response = client.post(
            "/admin/payment-methods", json=method_payload(bankDetailId="missing"), headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Bank detail not found"

    def test_create_rejects_unknown_fee_type(self, client, admin_headers):
        response = client.post("/admin/payment-methods", json=method_payload(feeType="tiered"), headers=admin_headers)

        assert response.status_code == 422

    def test_partial_update(self, client, db, admin_headers, duitku_method):
        response = client.put(
            f"/admin/payment-methods/{duitku_method.id}",
            json={"feeType": "percentage", "feeValue": 1.5, "maxFee": 10000},
            headers=admin_headers,
        )

        data = response.json()["data"]
        assert data["feeType"] == "percentage"
        assert data["maxFee"] == 10000
        assert data["name"] == "BCA VA"

    def test_get_unknown(self, client, admin_headers):
        assert client.get("/admin/payment-methods/missing", headers=admin_headers).status_code == 404

    def test_delete_unused(self, client, db, admin_headers, duitku_method):
        response = client.delete(f"/admin/payment-methods/{duitku_method.id}", headers=admin_headers)

        assert response.json()["result"] == "deleted"
        db.expire_all()
        assert db.query(PaymentMethod).filter_by(id=duitku_method.id).first() is None

    def test_delete_used_method_deactivates(self, client, db, admin_headers, customer, package, manual_method, make_transaction):
        transaction = make_transaction(customer, package, status="expired")
        db.add(
            Payment(
                transaction_id=transaction.id,
                amount=150000,
                method="bank_bca",
                status="expired",
                expires_at=datetime.utcnow() - timedelta(hours=1),
            )
        )
        db.commit()

        response = client.delete(f"/admin/payment-methods/{manual_method.id}", headers=admin_headers)

        assert response.json() == {
            "success": True,
            "result": "deactivated",
            "message": "Payment method deactivated",
        }
        db.expire_all()
        assert db.query(PaymentMethod).filter_by(id=manual_method.id).one().is_active is False

    def test_customer_is_forbidden(self, client, customer_headers):
        assert client.get("/admin/payment-methods", headers=customer_headers).status_code == 403


class TestGateways:
    def test_gateway_status(self, client, admin_headers):
        data = client.get("/admin/payment-methods/gateways", headers=admin_headers).json()["data"]

        assert data["manual"] == {"isActive": True, "isConfigured": True}
        assert data["duitku"]["isConfigured"] is True
        assert data["duitku"]["isProduction"] is False

    def test_sync_duitku(self, client, db, admin_headers):
        body = {
            "responseCode": "00",
            "paymentFee": [
                {"paymentMethod": "M2", "paymentName": "Mandiri VA", "paymentImage": None, "totalFee": "4000"},
            ],
        }
        with patch.object(gateway_manager.get_gateway("duitku"), "_post", AsyncMock(return_value=(200, body))):
            response = client.post("/admin/payment-methods/sync/duitku", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Synced 1 Duitku payment methods"
        db.expire_all()
        assert db.query(PaymentMethod).filter_by(code="duitku_M2").one().gateway_provider == "duitku"

    def test_defaults(self, client, db, admin_headers):
        data = client.post("/admin/payment-methods/defaults", headers=admin_headers).json()["data"]

        assert data["created"] == data["total"]
        assert db.query(PaymentMethod).filter(PaymentMethod.code.like("duitku_%")).count() == data["total"]


class TestBankDetails:
    def test_create_and_list(self, client, admin_headers):
        response = client.post(
            "/admin/bank-details",
            json={"bankName": "Mandiri", "accountNumber": "1370000000", "accountName": "PT Genfity Digital"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        listed = client.get("/admin/bank-details", headers=admin_headers).json()["data"]
        assert [b["bankName"] for b in listed] == ["Mandiri"]

    def test_update(self, client, admin_headers, bank_detail):
        response = client.put(
            f"/admin/bank-details/{bank_detail.id}", json={"swiftCode": "CENAIDJA"}, headers=admin_headers
        )

        data = response.json()["data"]
        assert data["swiftCode"] == "CENAIDJA"
        assert data["accountNumber"] == "1234567890"

    def test_delete_in_use(self, client, admin_headers, manual_method):
        response = client.delete(f"/admin/bank-details/{manual_method.bank_detail_id}", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Bank detail is used by payment methods"

    def test_delete(self, client, db, admin_headers, bank_detail):
        response = client.delete(f"/admin/bank-details/{bank_detail.id}", headers=admin_headers)

        assert response.status_code == 200
        db.expire_all()
        assert db.query(BankDetail).filter_by(id=bank_detail.id).first() is None


@pytest.mark.parametrize("path", ["/admin/bank-details", "/admin/payment-methods/gateways"])
def test_admin_requires_token(client, path):
    assert client.get(path).status_code in (401, 403)
