from datetime import datetime, timedelta

import pytest

from storefront.shared.formatting import (
    duration_text,
    format_expiry_countdown,
    format_idr,
    format_number_id,
)
from storefront.shared.validators import normalize_phone_number, validate_email

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("08123456789", "628123456789"),
        ("0812-3456-789", "628123456789"),
        ("+62 812 3456 789", "628123456789"),
        ("628123456789", "628123456789"),
        ("8123456789", "628123456789"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


def test_validate_email():
    assert validate_email("  Budi@Example.COM ") == "budi@example.com"
    assert validate_email(None) is None
    with pytest.raises(ValueError):
        validate_email("not-an-email")


def test_number_formatting():
    assert format_number_id(1500000) == "1.500.000"
    assert format_number_id(1500.25) == "1.500,25"
    assert format_number_id(None) == "0"
    assert format_idr(150000) == "Rp 150.000"


@pytest.mark.parametrize(
    "delta,expected",
    [
        (timedelta(minutes=30), "⏰ Payment in 30 minutes"),
        (timedelta(minutes=90), "⏰ Payment in 1h 30m"),
        (timedelta(days=1, hours=2), "⏰ Payment in 1d 2h"),
        (timedelta(minutes=-5), "⏰ Payment has expired"),
    ],
)
def test_expiry_countdown(delta, expected):
    assert format_expiry_countdown(NOW + delta, now=NOW) == expected


def test_expiry_countdown_without_deadline():
    assert format_expiry_countdown(None) == "⏰ No payment deadline"


def test_duration_text():
    assert duration_text("month") == "1 Month"
    assert duration_text("year") == "1 Year"
