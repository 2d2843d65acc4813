from datetime import datetime, timezone

import stripe

from stripe_sandbox import config

stripe.api_key = config.STRIPE_SECRET_KEY
stripe.max_network_retries = config.STRIPE_MAX_NETWORK_RETRIES


def iso_timestamp(epoch: int = None) -> str:
    if epoch is None:
        moment = datetime.now(timezone.utc)
    else:
        moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_amount(amount: int, currency: str) -> str:
    """Render a minor-unit amount for log lines, e.g. 5000 gbp -> '50.00 GBP'."""
    major, minor = divmod(amount, 100)
    return f"{major}.{minor:02d} {currency.upper()}"


def to_plain(value):
    """Turn a Stripe object tree into plain dicts and lists.

    Recent SDK releases no longer subclass dict, so ``.get`` and ``dict()``
    only work on the converted value.
    """
    if hasattr(value, "to_dict") and not isinstance(value, dict):
        value = value.to_dict()
    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    return value


def error_details(error: stripe.StripeError) -> dict:
    """Pull the fields callers care about out of a Stripe error."""
    body = error.json_body if isinstance(error.json_body, dict) else {}
    raw = body.get("error") or {}
    return {
        "message": error.user_message or str(error),
        "type": raw.get("type") or type(error).__name__,
        "code": error.code or raw.get("code"),
        "decline_code": raw.get("decline_code"),
    }


def create_payment_intent(amount: int, currency: str, customer_id: str = None, metadata: dict = None):
    params = {
        "amount": amount,
        "currency": currency,
        "automatic_payment_methods": {"enabled": True},
        "metadata": {**(metadata or {}), "timestamp": iso_timestamp()},
    }
    # Attaching a customer enables saved cards and billing history
    if customer_id:
        params["customer"] = customer_id
    return stripe.PaymentIntent.create(**params)


def create_customer(email: str, name: str = None, phone: str = None, metadata: dict = None):
    params = {
        "email": email,
        "metadata": {**(metadata or {}), "created_at": iso_timestamp()},
    }
    if name:
        params["name"] = name
    if phone:
        params["phone"] = phone
    return stripe.Customer.create(**params)


def retrieve_payment_intent(payment_intent_id: str):
    return stripe.PaymentIntent.retrieve(payment_intent_id)


def confirm_test_payment(amount: int, currency: str, payment_method: str,
                         metadata: dict = None, customer_id: str = None):
    """Create and confirm in one call. Only meaningful with test payment methods."""
    params = {
        "amount": amount,
        "currency": currency,
        "payment_method": payment_method,
        "confirm": True,
        # Required by some payment methods when confirming server-side
        "return_url": "https://example.com/return",
        "metadata": {**(metadata or {}), "timestamp": iso_timestamp()},
    }
    if customer_id:
        params["customer"] = customer_id
    return stripe.PaymentIntent.create(**params)


def construct_event(payload: bytes, signature: str, secret: str, tolerance: int):
    return stripe.Webhook.construct_event(payload, signature, secret, tolerance=tolerance)
