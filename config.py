import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
MONGO_TRANSACTIONS = _flag("MONGO_TRANSACTIONS")

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
CURRENCY = os.getenv("CURRENCY", "INR")

ADMIN_EMAIL_DOMAIN = os.getenv("ADMIN_EMAIL_DOMAIN", "admin.com").lower()
ADMIN_EMAILS = {e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()}

REFUND_WINDOW_DAYS = int(os.getenv("REFUND_WINDOW_DAYS", 30))
REFUND_MIN_REASON_LENGTH = int(os.getenv("REFUND_MIN_REASON_LENGTH", 10))
ORDER_ID_PREFIX = os.getenv("ORDER_ID_PREFIX", "LATHI_")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _flag("LOG_JSON")


def is_admin_email(email) -> bool:
    if not email:
        return False
    email = email.strip().lower()
    return email.endswith("@" + ADMIN_EMAIL_DOMAIN) or email in ADMIN_EMAILS
