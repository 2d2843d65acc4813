"""
Stripe webhook verification and event dispatch.

Stripe signs every delivery with the endpoint's signing secret. The
``Stripe-Signature`` header carries a timestamp and one or more HMAC-SHA256
digests of ``"<timestamp>.<raw body>"``; ``stripe.Webhook.construct_event``
recomputes them over the exact bytes we received, so the body must never be
parsed and re-serialised before verification.

Delivery is at-least-once and unordered. Every handler below only logs, so
running one twice for the same event id is harmless, and none of them assumes
an earlier event type has already arrived. A deployment that fulfils orders
from these handlers needs its own store of processed event ids.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import stripe
from pydantic import BaseModel

from stripe_sandbox import config
from stripe_sandbox.exceptions import WebhookVerificationError
from stripe_sandbox.stripe_service import construct_event, format_amount, to_plain

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    PAYMENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_FAILED = "payment_intent.payment_failed"
    PAYMENT_REQUIRES_ACTION = "payment_intent.requires_action"
    CUSTOMER_CREATED = "customer.created"
    DISPUTE_CREATED = "charge.dispute.created"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, event_type: str) -> "EventKind":
        try:
            return cls(event_type)
        except ValueError:
            return cls.UNKNOWN


class WebhookEvent(BaseModel):
    id: str
    type: str
    kind: EventKind
    data_object: Dict[str, Any] = {}
    created: Optional[int] = None

    @classmethod
    def from_stripe(cls, event) -> "WebhookEvent":
        event = to_plain(event)
        event_id = event.get("id")
        event_type = event.get("type")
        if not event_id or not event_type:
            raise WebhookVerificationError("Event is missing id or type")

        data = event.get("data") or {}
        return cls(
            id=event_id,
            type=event_type,
            kind=EventKind.parse(event_type),
            data_object=data.get("object") or {},
            created=event.get("created"),
        )


def verify_event(payload: bytes, signature: Optional[str], secret: Optional[str],
                 tolerance: int = config.WEBHOOK_TOLERANCE) -> WebhookEvent:
    """Authenticate a raw webhook body and return it as a typed event.

    Raises WebhookVerificationError on any failure; nothing in the payload
    should be acted on in that case.
    """
    if not secret:
        raise WebhookVerificationError("Webhook signing secret is not configured")
    if not signature:
        raise WebhookVerificationError("No stripe-signature header value was provided")

    try:
        event = construct_event(payload, signature, secret, tolerance)
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(str(e)) from e

    return WebhookEvent.from_stripe(event)


def _amount(obj: Dict[str, Any]) -> str:
    amount = obj.get("amount")
    if not isinstance(amount, int):
        return "unknown amount"
    return format_amount(amount, obj.get("currency") or config.DEFAULT_CURRENCY)


def on_payment_succeeded(event: WebhookEvent):
    intent = event.data_object
    logger.info(
        "Payment succeeded: %s | %s | customer: %s | metadata: %s",
        intent.get("id"), _amount(intent), intent.get("customer") or "guest",
        dict(intent.get("metadata") or {}),
    )
    # Fulfil the order / send the confirmation email here


def on_payment_failed(event: WebhookEvent):
    intent = event.data_object
    error = intent.get("last_payment_error") or {}
    logger.warning(
        "Payment failed: %s | code: %s | decline code: %s | message: %s",
        intent.get("id"), error.get("code"), error.get("decline_code"), error.get("message"),
    )


def on_payment_requires_action(event: WebhookEvent):
    intent = event.data_object
    next_action = intent.get("next_action") or {}
    # The 3DS challenge itself is completed by the frontend
    logger.info("3DS authentication required: %s | action: %s", intent.get("id"), next_action.get("type"))


def on_customer_created(event: WebhookEvent):
    customer = event.data_object
    logger.info("New customer created: %s | %s", customer.get("id"), customer.get("email"))


def on_dispute_created(event: WebhookEvent):
    dispute = event.data_object
    logger.warning(
        "Dispute opened: %s | %s | reason: %s",
        dispute.get("id"), _amount(dispute), dispute.get("reason"),
    )


def on_unknown(event: WebhookEvent):
    # Acknowledged anyway, otherwise Stripe keeps redelivering it
    logger.info("Unhandled event type: %s", event.type)


HANDLERS: Dict[EventKind, Callable[[WebhookEvent], None]] = {
    EventKind.PAYMENT_SUCCEEDED: on_payment_succeeded,
    EventKind.PAYMENT_FAILED: on_payment_failed,
    EventKind.PAYMENT_REQUIRES_ACTION: on_payment_requires_action,
    EventKind.CUSTOMER_CREATED: on_customer_created,
    EventKind.DISPUTE_CREATED: on_dispute_created,
    EventKind.UNKNOWN: on_unknown,
}

_missing = set(EventKind) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No webhook handler for: {sorted(k.value for k in _missing)}")


def dispatch(event: WebhookEvent):
    HANDLERS[event.kind](event)
