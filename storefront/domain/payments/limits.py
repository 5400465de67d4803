"""Payment amount limits per payment method"""

from typing import Optional

from ...shared.formatting import format_idr

# Manual bank transfer - higher limits than gateway methods
MANUAL_BANK_TRANSFER_LIMITS = {
    "min_amount": 0,
    "max_amount": 100_000_000,
    "currency": "idr",
    "notes": "Manual bank transfer - higher limits",
}


def _limits(min_amount: int, max_amount: int, currency: str = "idr", notes: Optional[str] = None) -> dict:
    return {"min_amount": min_amount, "max_amount": max_amount, "currency": currency, "notes": notes}


_VIRTUAL_ACCOUNT_CODES = ("BC", "M2", "VA", "I1", "B1", "BT", "BV", "A1", "AG", "NC", "BR")
_EWALLET_CODES = ("OV", "SA", "LF", "LA", "DA", "SL", "OL", "JP")
_QRIS_CODES = ("SP", "NQ", "GQ", "SQ")
_PAYLATER_CODES = ("DN", "AT")

# Duitku limits keyed by gateway code
DUITKU_PAYMENT_LIMITS = {
    "VC": _limits(10_000, 500_000_000, currency="any", notes="Credit card supports high amounts"),
    **{code: _limits(10_000, 50_000_000) for code in _VIRTUAL_ACCOUNT_CODES},
    "IR": _limits(10_000, 5_000_000, notes="Indomaret has cash handling limits"),
    "FT": _limits(10_000, 2_500_000, notes="Retail outlets have cash handling limits"),
    **{code: _limits(1, 2_000_000) for code in _EWALLET_CODES},
    **{code: _limits(1, 10_000_000) for code in _QRIS_CODES},
    **{code: _limits(10_000, 25_000_000) for code in _PAYLATER_CODES},
}


def clean_gateway_code(method_code: str) -> str:
    """Strip the duitku_ prefix used for stored method codes"""
    return method_code[len("duitku_") :] if method_code.startswith("duitku_") else method_code


def get_payment_limits(method_code: str, is_gateway_method: bool = True) -> Optional[dict]:
    """Limits for a method, or None when a gateway code is unknown"""
    if not is_gateway_method:
        return MANUAL_BANK_TRANSFER_LIMITS
    return DUITKU_PAYMENT_LIMITS.get(clean_gateway_code(method_code))


def validate_payment_amount(amount: float, method_code: str, is_gateway_method: bool) -> dict:
    """
    Check an amount against the limits of a payment method.

    Returns:
        dict with 'valid' (bool), 'message' when invalid, and 'limits' when known
    """
    limits = get_payment_limits(method_code, is_gateway_method)
    if not limits:
        return {"valid": False, "message": f"Payment method {method_code} is not supported"}

    if amount < limits["min_amount"]:
        return {
            "valid": False,
            "message": f"Payment amount too low. Minimum: {format_idr(limits['min_amount'])}",
            "limits": limits,
        }

    if amount > limits["max_amount"]:
        notes = f" ({limits['notes']})" if limits.get("notes") else ""
        return {
            "valid": False,
            "message": f"Payment amount exceeds maximum limit. Maximum: {format_idr(limits['max_amount'])}{notes}",
            "limits": limits,
        }

    return {"valid": True, "limits": limits}


def is_payment_amount_valid(amount: float, method_code: str, is_gateway_method: bool) -> bool:
    return validate_payment_amount(amount, method_code, is_gateway_method)["valid"]


def get_formatted_limits(method_code: str, is_gateway_method: bool = True) -> Optional[str]:
    limits = get_payment_limits(method_code, is_gateway_method)
    if not limits:
        return None
    return f"{format_idr(limits['min_amount'])} - {format_idr(limits['max_amount'])}"
