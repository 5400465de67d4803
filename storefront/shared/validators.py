"""Shared validation utilities"""

import re
from typing import Optional


def normalize_phone_number(phone: Optional[str]) -> str:
    """
    Normalize a phone number to international digits without '+'.

    Indonesian local numbers are rewritten with the 62 country code, so
    08123456789 becomes 628123456789. Numbers that already carry a country
    code are returned as digits only.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number, or an empty string when nothing usable is given
    """
    if not phone:
        return ""

    clean = re.sub(r"[\s\-()]", "", phone)

    if clean.startswith("+"):
        return clean[1:]
    if clean.startswith("08"):
        return "62" + clean[1:]
    if clean.startswith("0") and len(clean) >= 10:
        return "62" + clean[1:]
    if clean.startswith("62") and len(clean) >= 11:
        return clean
    if re.fullmatch(r"8\d{8,12}", clean):
        return "62" + clean
    if re.fullmatch(r"[1-9]\d{7,14}", clean):
        return clean

    # Fallback: keep digits and assume an Indonesian mobile number
    digits = re.sub(r"\D", "", clean)
    if len(digits) >= 8 and digits.startswith("8"):
        return "62" + digits
    return digits


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", email):
        raise ValueError("Invalid email format")
    return email
