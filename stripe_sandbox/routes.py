import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt

from stripe_sandbox import config
from stripe_sandbox.auth import verify_token
from stripe_sandbox.exceptions import InvalidRequest
from stripe_sandbox.stripe_service import (
    create_customer,
    create_payment_intent,
    error_details,
    format_amount,
    iso_timestamp,
    retrieve_payment_intent,
    to_plain,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class PaymentIntentRequest(BaseModel):
    # Always in the smallest currency unit: 5000 gbp is 50.00 GBP
    amount: Optional[StrictInt] = None
    currency: str = config.DEFAULT_CURRENCY
    customer_id: Optional[str] = Field(None, alias="customerId")
    metadata: Dict[str, Any] = {}


class CustomerRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    metadata: Dict[str, Any] = {}


def _stripe_error(error: stripe.StripeError, status_code: int = 400) -> JSONResponse:
    details = error_details(error)
    return JSONResponse(
        status_code=status_code,
        content={"error": details["message"], "type": details["type"]},
    )


@router.post("/create-payment-intent")
def create_payment_intent_api(
    request: PaymentIntentRequest,
    auth=Depends(verify_token)
):
    if request.amount is None or request.amount <= 0:
        raise InvalidRequest("Amount must be a positive integer (in pence/cents)")

    try:
        intent = create_payment_intent(
            request.amount, request.currency, request.customer_id, request.metadata
        )
    except stripe.StripeError as e:
        details = error_details(e)
        logger.error("PaymentIntent creation failed: %s (code: %s)", details["message"], details["code"])
        return _stripe_error(e)

    # The client secret goes to the frontend only; never log it
    logger.info(
        "PaymentIntent created: %s | %s | status: %s",
        intent.id, format_amount(request.amount, request.currency), intent.status,
    )

    return {
        "paymentIntentId": intent.id,
        "clientSecret": intent.client_secret,
        "amount": intent.amount,
        "currency": intent.currency,
        "status": intent.status,
    }


@router.post("/create-customer")
def create_customer_api(
    request: CustomerRequest,
    auth=Depends(verify_token)
):
    if not request.email:
        raise InvalidRequest("Email is required to create a Customer")

    try:
        customer = create_customer(request.email, request.name, request.phone, request.metadata)
    except stripe.StripeError as e:
        details = error_details(e)
        logger.error("Customer creation failed: %s (code: %s)", details["message"], details["code"])
        return _stripe_error(e)

    logger.info("Customer created: %s | %s", customer.id, request.email)

    return {
        "customerId": customer.id,
        "email": customer.email,
        "name": customer.name,
        "created": iso_timestamp(customer.created),
        "dashboardUrl": f"{config.DASHBOARD_URL}/customers/{customer.id}",
    }


@router.get("/payment-status/{payment_intent_id}")
def get_payment_status_api(
    payment_intent_id: str,
    auth=Depends(verify_token)
):
    if not payment_intent_id.startswith(config.PAYMENT_INTENT_PREFIX):
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid PaymentIntent ID. Should start with {config.PAYMENT_INTENT_PREFIX}"},
        )

    try:
        intent = retrieve_payment_intent(payment_intent_id)
    except stripe.StripeError as e:
        details = error_details(e)
        logger.error(
            "Retrieve PaymentIntent %s failed: %s (code: %s)",
            payment_intent_id, details["message"], details["code"],
        )
        return JSONResponse(status_code=404, content={"error": details["message"]})

    error = to_plain(intent.last_payment_error)
    return {
        "id": intent.id,
        "status": intent.status,
        "amount": intent.amount,
        "currency": intent.currency,
        "customer": intent.customer,
        "metadata": to_plain(intent.metadata) or {},
        "created": iso_timestamp(intent.created),
        "lastError": {
            "code": error.get("code"),
            "message": error.get("message"),
            "declineCode": error.get("decline_code"),
        } if error else None,
    }
