"""Display formatting shared by notifications and API responses"""

from datetime import datetime
from typing import Optional


def format_number_id(amount: float) -> str:
    """Format a number the Indonesian way: 1.500.000 or 1.500,25"""
    amount = float(amount or 0)
    if amount == int(amount):
        return f"{int(amount):,}".replace(",", ".")
    whole, fraction = f"{amount:,.2f}".split(".")
    return f"{whole.replace(',', '.')},{fraction}"


def format_idr(amount: float) -> str:
    return f"Rp {format_number_id(amount)}"


def format_expiry_countdown(expires_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human countdown until expires_at: minutes, 'Xh Ym' or 'Xd Yh'"""
    if not expires_at:
        return "⏰ No payment deadline"
    now = now or datetime.utcnow()
    minutes = int((expires_at - now).total_seconds() // 60)

    if minutes <= 0:
        return "⏰ Payment has expired"
    if minutes < 60:
        return f"⏰ Payment in {minutes} minutes"
    if minutes < 1440:
        return f"⏰ Payment in {minutes // 60}h {minutes % 60}m"
    return f"⏰ Payment in {minutes // 1440}d {(minutes % 1440) // 60}h"


def duration_text(duration: Optional[str]) -> str:
    return "1 Year" if duration == "year" else "1 Month"
