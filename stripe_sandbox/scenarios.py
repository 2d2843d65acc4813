"""
Run payment scenarios against the Stripe sandbox from the terminal.

Uses Stripe's built-in test PaymentMethods so no frontend is needed:

    stripe-sandbox-scenarios

Every PaymentIntent is created and confirmed server-side, which only works
in test mode.
"""

import logging

import stripe

from stripe_sandbox import config
from stripe_sandbox.stripe_service import (
    confirm_test_payment,
    create_customer,
    error_details,
    format_amount,
    iso_timestamp,
    retrieve_payment_intent,
    to_plain,
)

logger = logging.getLogger(__name__)

TEST_PAYMENT_METHODS = {
    "success": "pm_card_visa",  # 4242 4242 4242 4242
    "generic_decline": "pm_card_visa_chargeDeclined",
    "insufficient_funds": "pm_card_visa_chargeDeclinedInsufficientFunds",
    "fraud_decline": "pm_card_visa_chargeDeclinedFraudulent",
    "uk_visa": "pm_card_gb_visa",
}


def run_test_payment(label: str, payment_method: str, amount: int = 5000, currency: str = "gbp") -> dict:
    logger.info("TEST: %s | %s | payment method: %s", label, format_amount(amount, currency), payment_method)

    try:
        intent = confirm_test_payment(
            amount, currency, payment_method, metadata={"test_scenario": label}
        )
    except stripe.StripeError as e:
        details = error_details(e)
        logger.info(
            "  declined: %s | code: %s | decline code: %s | %s",
            details["type"], details["code"], details["decline_code"], details["message"],
        )
        return {
            "success": False,
            "code": details["code"],
            "declineCode": details["decline_code"],
            "message": details["message"],
        }

    logger.info("  result: %s | %s", intent.status, intent.id)
    return {"success": True, "id": intent.id, "status": intent.status}


def run_customer_flow(email: str = "test@example.com", name: str = "Test User") -> dict:
    logger.info("TEST: Customer creation + linked payment")

    customer = create_customer(email, name, metadata={"internal_user_id": "USR-DEMO-001"})
    logger.info("  customer created: %s", customer.id)

    intent = confirm_test_payment(
        9900, "gbp", TEST_PAYMENT_METHODS["success"],
        metadata={"test_scenario": "customer_linked_payment", "order_ref": "ORD-DEMO-001"},
        customer_id=customer.id,
    )
    logger.info("  payment %s: %s | customer: %s", intent.id, intent.status, intent.customer)
    logger.info("  dashboard: %s/customers/%s", config.DASHBOARD_URL, customer.id)

    return {"customerId": customer.id, "paymentIntentId": intent.id, "status": intent.status}


def inspect_payment(payment_intent_id: str) -> dict:
    intent = retrieve_payment_intent(payment_intent_id)
    summary = {
        "id": intent.id,
        "status": intent.status,
        "amount": format_amount(intent.amount, intent.currency),
        "created": iso_timestamp(intent.created),
        "metadata": to_plain(intent.metadata) or {},
    }
    logger.info("TEST: Retrieve %s | %s", payment_intent_id, summary)
    return summary


def run_all() -> list:
    results = [
        run_test_payment("Successful payment (Visa)", TEST_PAYMENT_METHODS["success"], 5000),
        run_test_payment("Generic card decline", TEST_PAYMENT_METHODS["generic_decline"], 2000),
        run_test_payment("Insufficient funds decline", TEST_PAYMENT_METHODS["insufficient_funds"], 15000),
        run_test_payment("UK Visa card (GBP)", TEST_PAYMENT_METHODS["uk_visa"], 7500),
    ]

    try:
        results.append(run_customer_flow())
    except stripe.StripeError as e:
        logger.error("Customer flow failed: %s", error_details(e)["message"])

    if results[0].get("success"):
        inspect_payment(results[0]["id"])

    passed = sum(1 for r in results if r.get("success") or r.get("customerId"))
    logger.info("SUMMARY: %d/%d scenarios completed without a processor error", passed, len(results))
    logger.info("View all test payments at %s/payments", config.DASHBOARD_URL)
    return results


def main():
    config.configure_logging()
    run_all()


if __name__ == "__main__":
    main()
