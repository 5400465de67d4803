from datetime import datetime, timedelta

import pytest

from storefront.domain.vouchers.service import (
    VoucherError,
    calculate_discount,
    check_voucher_rules,
    get_calculation_type,
)
from storefront.models import Transaction, Voucher, VoucherUsage


def make_voucher(**kwargs):
    defaults = {
        "code": "PROMO",
        "name": "Promo",
        "discount_type": "fixed_amount",
        "value": 10000,
        "is_active": True,
        "used_count": 0,
        "allow_multiple_use_per_user": False,
        "start_date": datetime.utcnow() - timedelta(days=1),
    }
    defaults.update(kwargs)
    return Voucher(**defaults)


class TestDiscountCalculation:
    def test_percentage_discount(self):
        assert calculate_discount(make_voucher(discount_type="percentage", value=10), 150000) == 15000

    def test_percentage_discount_capped_by_max_discount(self):
        voucher = make_voucher(discount_type="percentage", value=50, max_discount=25000)

        assert calculate_discount(voucher, 150000) == 25000

    def test_fixed_discount_never_exceeds_amount(self):
        assert calculate_discount(make_voucher(value=200000), 150000) == 150000

    def test_legacy_type_wins_over_discount_type(self):
        voucher = make_voucher(type="percentage", discount_type="fixed_amount", value=20)

        assert get_calculation_type(voucher) == "percentage"
        assert calculate_discount(voucher, 100000) == 20000

    def test_unknown_type_falls_back_to_fixed_amount(self):
        assert get_calculation_type(make_voucher(type=None, discount_type="bogus")) == "fixed_amount"


class TestVoucherRules:
    def test_missing_voucher(self, db):
        with pytest.raises(VoucherError, match="Invalid voucher code"):
            check_voucher_rules(db, None, 100000)

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"is_active": False}, "Voucher is not active"),
            ({"start_date": datetime.utcnow() + timedelta(days=2)}, "Voucher is not yet valid"),
            ({"end_date": datetime.utcnow() - timedelta(hours=1)}, "Voucher has expired"),
            ({"max_uses": 5, "used_count": 5}, "Voucher usage limit reached"),
            ({"min_amount": 200000}, "Minimum order amount is Rp 200.000"),
        ],
    )
    def test_rule_violations(self, db, overrides, message):
        with pytest.raises(VoucherError) as exc:
            check_voucher_rules(db, make_voucher(**overrides), 150000)
        assert exc.value.message == message

    def test_single_use_per_user(self, db, customer, voucher, package, make_transaction):
        transaction = make_transaction(customer, package)
        db.add(VoucherUsage(voucher_id=voucher.id, user_id=customer.id, transaction_id=transaction.id))
        db.commit()

        with pytest.raises(VoucherError, match="already used"):
            check_voucher_rules(db, voucher, 150000, user_id=customer.id)

        voucher.allow_multiple_use_per_user = True
        db.commit()
        assert check_voucher_rules(db, voucher, 150000, user_id=customer.id) is voucher


class TestCheckVoucherEndpoint:
    def test_valid_voucher(self, client, voucher, package):
        response = client.post(
            "/public/check-voucher",
            json={"code": "hemat10", "items": [{"type": "whatsapp", "id": package.id, "duration": "month"}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        calculation = body["data"]["calculation"]
        assert calculation["originalAmount"] == 150000
        assert calculation["discountAmount"] == 15000
        assert calculation["finalAmount"] == 135000
        assert calculation["items"][0]["name"] == "WhatsApp Pro"

    def test_unknown_code(self, client, package):
        response = client.post(
            "/public/check-voucher",
            json={"code": "NOPE", "items": [{"type": "whatsapp", "id": package.id, "duration": "month"}]},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "valid": False, "error": "Invalid voucher code"}

    def test_missing_duration(self, client, voucher, package):
        response = client.post(
            "/public/check-voucher",
            json={"code": "HEMAT10", "items": [{"type": "whatsapp", "id": package.id}]},
        )

        assert response.status_code == 400
        assert "Duration is required" in response.json()["error"]


class TestAdminVouchers:
    def test_create_and_list(self, client, admin_headers):
        response = client.post(
            "/admin/vouchers",
            json={"code": " launch ", "name": "Launch", "discountType": "fixed_amount", "value": 25000},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["code"] == "LAUNCH"

        duplicate = client.post(
            "/admin/vouchers",
            json={"code": "LAUNCH", "name": "Again", "value": 1000},
            headers=admin_headers,
        )
        assert duplicate.status_code == 400

        listing = client.get("/admin/vouchers", headers=admin_headers)
        assert [v["code"] for v in listing.json()["data"]] == ["LAUNCH"]

    def test_update_clears_optional_limits(self, client, db, admin_headers, voucher):
        voucher.max_uses = 100
        voucher.min_amount = 100000
        voucher.end_date = datetime.utcnow() + timedelta(days=30)
        db.commit()

        response = client.put(
            f"/admin/vouchers/{voucher.id}",
            json={"maxUses": None, "minAmount": None, "endDate": None, "name": "Hemat Selamanya"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        body = response.json()["data"]
        assert body["maxUses"] is None
        assert body["minAmount"] is None
        assert body["endDate"] is None
        assert body["name"] == "Hemat Selamanya"
        assert body["maxDiscount"] == 50000
        db.expire_all()
        assert db.query(Voucher).filter(Voucher.id == voucher.id).one().max_uses is None

    def test_update_cannot_clear_required_fields(self, client, admin_headers, voucher):
        response = client.put(f"/admin/vouchers/{voucher.id}", json={"name": None}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot clear required fields: name"

    def test_customer_cannot_manage_vouchers(self, client, customer_headers):
        response = client.get("/admin/vouchers", headers=customer_headers)

        assert response.status_code == 403

    def test_delete_redeemed_voucher_deactivates_it(self, client, db, admin_headers, voucher, customer, package):
        db.add(Transaction(user_id=customer.id, amount=150000, voucher_id=voucher.id))
        db.commit()

        response = client.delete(f"/admin/vouchers/{voucher.id}", headers=admin_headers)

        assert response.status_code == 200
        db.expire_all()
        assert db.query(Voucher).filter(Voucher.id == voucher.id).one().is_active is False
