import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Force-load .env from the repository root (reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_MAX_NETWORK_RETRIES = int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "0"))

# Stripe's own default signature tolerance is 300 seconds
WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_CURRENCY = "gbp"
PAYMENT_INTENT_PREFIX = "pi_"
DASHBOARD_URL = "https://dashboard.stripe.com/test"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def webhook_secret():
    # Read per request so the signing secret can be rotated without a restart
    return os.getenv("STRIPE_WEBHOOK_SECRET")


def jwt_secret():
    return os.getenv("JWT_SECRET")


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def masked_key(key: str = None, visible: int = 14) -> str:
    key = key if key is not None else STRIPE_SECRET_KEY
    if not key:
        return "<not set>"
    return key[:visible] + "..."
