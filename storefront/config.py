import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days

# Public site URL, used for payment status links and gateway redirects
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

# Comma separated list of origins for CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", APP_URL)

# Duitku Payment Gateway Configuration
DUITKU_MERCHANT_CODE = os.getenv("DUITKU_MERCHANT_CODE")
DUITKU_API_KEY = os.getenv("DUITKU_API_KEY")
# Sandbox unless the URL points somewhere else
DUITKU_BASE_URL = os.getenv("DUITKU_BASE_URL", "https://sandbox.duitku.com/webapi/api/merchant")
DUITKU_CALLBACK_URL = os.getenv("DUITKU_CALLBACK_URL", f"{APP_URL}/api/public/duitku/callback")
DUITKU_RETURN_URL = os.getenv("DUITKU_RETURN_URL", f"{APP_URL}/api/public/duitku/return")
# Account link credentials required by ShopeePay (SL) and OVO link (OL)
DUITKU_SHOPEEPAY_CREDENTIAL_CODE = os.getenv("DUITKU_SHOPEEPAY_CREDENTIAL_CODE")
DUITKU_OVO_CREDENTIAL_CODE = os.getenv("DUITKU_OVO_CREDENTIAL_CODE")

# WhatsApp-Go messaging server
WHATSAPP_SERVER_API = os.getenv("WHATSAPP_SERVER_API", "https://wa.genfity.com")
WHATSAPP_ADMIN_TOKEN = os.getenv("WHATSAPP_ADMIN_TOKEN", "")
WHATSAPP_USER_TOKEN = os.getenv("WHATSAPP_USER_TOKEN", "")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Genfity <noreply@genfity.com>")

# Order lifecycle
TRANSACTION_EXPIRY_DAYS = int(os.getenv("TRANSACTION_EXPIRY_DAYS", "7"))
MANUAL_PAYMENT_EXPIRY_HOURS = int(os.getenv("MANUAL_PAYMENT_EXPIRY_HOURS", "24"))
