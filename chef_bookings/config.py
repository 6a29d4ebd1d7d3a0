import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = os.getenv("DB_SCHEMA", "chef_bookings")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

SITE_URL = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")
CURRENCY = os.getenv("CURRENCY", "usd").lower()

# Stripe
STRIPE_SECRET = os.getenv("STRIPE_SECRET", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))

# Anti-abuse (reCAPTCHA). ALLOW_UNVERIFIED decides what happens when no secret is set.
RECAPTCHA_SECRET = os.getenv("RECAPTCHA_SECRET", "")
ALLOW_UNVERIFIED = os.getenv("ALLOW_UNVERIFIED", "false").lower() == "true"

# Admin
ADMIN_KEY = os.getenv("ADMIN_KEY", "")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "")

# Email (Resend)
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
FROM_EMAIL = os.getenv("FROM_EMAIL", "Chef Bookings <bookings@example.com>")
REPLY_TO = os.getenv("REPLY_TO", "")

# Booking rules
RESOURCE_CAPACITY_PER_DAY = int(os.getenv("RESOURCE_CAPACITY_PER_DAY", "1"))
DEPOSIT_RATE = float(os.getenv("DEPOSIT_RATE", "0.30"))
ACCESS_CODES: set[str] = {
    code.strip().upper() for code in os.getenv("ACCESS_CODES", "").split(",") if code.strip()
}
