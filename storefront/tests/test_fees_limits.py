import pytest

from storefront.domain.payments.fees import calculate_service_fee, describe_service_fee
from storefront.domain.payments.limits import (
    clean_gateway_code,
    get_formatted_limits,
    get_payment_limits,
    is_payment_amount_valid,
    validate_payment_amount,
)
from storefront.models import PaymentMethod


def make_method(**kwargs):
    defaults = {"code": "duitku_BC", "name": "BCA VA", "type": "virtual_account", "is_gateway_method": True}
    defaults.update(kwargs)
    return PaymentMethod(**defaults)


class TestServiceFee:
    def test_fixed_fee_is_added_to_amount(self):
        fee = calculate_service_fee(100000, make_method(fee_type="fixed", fee_value=4000))

        assert fee.fee_amount == 4000
        assert fee.total_with_fee == 104000
        assert fee.fee_type == "fixed"

    def test_percentage_fee(self):
        fee = calculate_service_fee(200000, make_method(fee_type="percentage", fee_value=2.5))

        assert fee.fee_amount == 5000
        assert fee.total_with_fee == 205000

    def test_percentage_fee_raised_to_min_fee(self):
        fee = calculate_service_fee(100000, make_method(fee_type="percentage", fee_value=1, min_fee=3000))

        assert fee.fee_amount == 3000

    def test_percentage_fee_capped_at_max_fee(self):
        fee = calculate_service_fee(10_000_000, make_method(fee_type="percentage", fee_value=2, max_fee=25000))

        assert fee.fee_amount == 25000
        assert fee.total_with_fee == 10_025_000

    def test_zero_min_and_max_are_ignored(self):
        fee = calculate_service_fee(100000, make_method(fee_type="percentage", fee_value=1, min_fee=0, max_fee=0))

        assert fee.fee_amount == 1000
        assert fee.min_fee is None
        assert fee.max_fee is None

    def test_method_without_fee_config_is_free(self):
        fee = calculate_service_fee(50000, make_method(fee_type=None, fee_value=None))

        assert fee.fee_amount == 0
        assert fee.total_with_fee == 50000

    def test_fractional_percentage_fee(self):
        fee = calculate_service_fee(12345, make_method(fee_type="percentage", fee_value=2))

        assert fee.fee_amount == 246.9
        assert fee.total_with_fee == 12591.9

    def test_describe_fees(self):
        assert describe_service_fee(make_method(fee_type="fixed", fee_value=0))["description"] == "No service fee"
        assert describe_service_fee(make_method(fee_type="fixed", fee_value=4000))["description"] == (
            "Fixed fee IDR 4.000"
        )
        described = describe_service_fee(make_method(fee_type="percentage", fee_value=2, min_fee=1000))
        assert described["description"] == "2% fee"
        assert described["minFee"] == 1000
        assert described["maxFee"] is None

    def test_describe_fractional_percentage(self):
        described = describe_service_fee(make_method(fee_type="percentage", fee_value=2.5))

        assert described["description"] == "2.5% fee"


class TestPaymentLimits:
    def test_clean_gateway_code(self):
        assert clean_gateway_code("duitku_BC") == "BC"
        assert clean_gateway_code("BC") == "BC"

    def test_manual_methods_use_bank_transfer_limits(self):
        limits = get_payment_limits("bank_bca", is_gateway_method=False)

        assert limits["min_amount"] == 0
        assert limits["max_amount"] == 100_000_000
        assert is_payment_amount_valid(0, "bank_bca", False)
        assert not is_payment_amount_valid(100_000_001, "bank_bca", False)

    def test_amount_below_minimum(self):
        result = validate_payment_amount(5000, "duitku_BC", True)

        assert result["valid"] is False
        assert result["message"] == "Payment amount too low. Minimum: Rp 10.000"

    def test_amount_above_maximum_mentions_notes(self):
        result = validate_payment_amount(6_000_000, "duitku_IR", True)

        assert result["valid"] is False
        assert "Maximum: Rp 5.000.000" in result["message"]
        assert "(Indomaret has cash handling limits)" in result["message"]

    @pytest.mark.parametrize(
        "code,amount",
        [("duitku_BC", 10_000), ("duitku_BC", 50_000_000), ("duitku_OV", 1), ("duitku_SP", 10_000_000)],
    )
    def test_amounts_on_the_boundary_are_valid(self, code, amount):
        assert validate_payment_amount(amount, code, True)["valid"] is True

    def test_unknown_gateway_code_is_rejected(self):
        result = validate_payment_amount(100000, "duitku_ZZ", True)

        assert result == {"valid": False, "message": "Payment method duitku_ZZ is not supported"}

    def test_formatted_limits(self):
        assert get_formatted_limits("duitku_BC") == "Rp 10.000 - Rp 50.000.000"
        assert get_formatted_limits("duitku_ZZ") is None
