"""Service fee computation for payment methods"""

from typing import Optional

from pydantic import BaseModel

from ...models import PaymentMethod
from ...shared.formatting import format_number_id


class ServiceFeeCalculation(BaseModel):
    amount: float
    fee_type: str
    fee_value: float
    fee_amount: float
    total_with_fee: float
    min_fee: Optional[float] = None
    max_fee: Optional[float] = None


def calculate_service_fee(amount: float, method: PaymentMethod) -> ServiceFeeCalculation:
    """
    Apply the method's fee configuration to an amount.

    Percentage fees are clamped to min_fee / max_fee when those are positive.
    Methods without a fee configuration charge nothing.
    """
    fee_type = method.fee_type or "fixed"
    fee_value = float(method.fee_value or 0)
    min_fee = float(method.min_fee) if method.min_fee else None
    max_fee = float(method.max_fee) if method.max_fee else None

    if fee_type == "percentage":
        fee = amount * fee_value / 100
        if min_fee and min_fee > 0 and fee < min_fee:
            fee = min_fee
        if max_fee and max_fee > 0 and fee > max_fee:
            fee = max_fee
    else:
        fee = fee_value

    fee = round(fee, 2)
    return ServiceFeeCalculation(
        amount=amount,
        fee_type=fee_type,
        fee_value=fee_value,
        fee_amount=fee,
        total_with_fee=round(amount + fee, 2),
        min_fee=min_fee,
        max_fee=max_fee,
    )


def describe_service_fee(method: PaymentMethod) -> dict:
    """Fee block shown next to a payment method"""
    if not method.fee_type or not method.fee_value:
        return {
            "type": "fixed",
            "value": 0,
            "currency": "idr",
            "description": "No service fee",
            "minFee": None,
            "maxFee": None,
        }

    value = float(method.fee_value)
    if method.fee_type == "percentage":
        description = f"{value:g}% fee"
    else:
        description = f"Fixed fee IDR {format_number_id(value)}"

    return {
        "type": method.fee_type,
        "value": value,
        "currency": "idr",
        "description": description,
        "minFee": float(method.min_fee) if method.min_fee else None,
        "maxFee": float(method.max_fee) if method.max_fee else None,
    }
