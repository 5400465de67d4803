"""
Webhook Security Module

Signature verification for payment gateway callbacks.
- Constant-time signature comparison
- Detailed logging for security auditing
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def constant_time_compare(a: str, b: str) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def md5_hex(*parts) -> str:
    """MD5 hex digest of the concatenated string form of parts"""
    return hashlib.md5("".join(str(p) for p in parts).encode("utf-8")).hexdigest()  # noqa: S324


def sha256_hex(*parts) -> str:
    """SHA256 hex digest of the concatenated string form of parts"""
    return hashlib.sha256("".join(str(p) for p in parts).encode("utf-8")).hexdigest()


def verify_duitku_callback(
    merchant_code: str,
    amount: str,
    merchant_order_id: str,
    signature: str,
    api_key: str,
) -> bool:
    """
    Verify a Duitku callback signature.

    Duitku signs callbacks with MD5(merchantCode + amount + merchantOrderId + apiKey).

    Args:
        merchant_code: merchantCode field of the callback
        amount: amount field exactly as posted
        merchant_order_id: merchantOrderId field of the callback
        signature: signature field of the callback
        api_key: Merchant API key

    Returns:
        True if the signature matches
    """
    if not api_key:
        logger.error("❌ Duitku API key not configured - cannot verify callback")
        return False

    expected = md5_hex(merchant_code, amount, merchant_order_id, api_key)
    if constant_time_compare(expected, (signature or "").lower()):
        logger.info(f"✅ Duitku callback signature verified for order {merchant_order_id}")
        return True

    logger.warning(f"🚫 Invalid Duitku callback signature for order {merchant_order_id}")
    return False
