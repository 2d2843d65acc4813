import pytest
import stripe
from fastapi.testclient import TestClient
from jose import jwt
from stripe_sandbox.main import app as fastapi_app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with TestClient(fastapi_app) as c:
        yield c


def card_declined():
    return stripe.CardError(
        "Your card was declined.",
        None,
        "card_declined",
        json_body={
            "error": {
                "type": "card_error",
                "code": "card_declined",
                "decline_code": "generic_decline",
                "message": "Your card was declined.",
            }
        },
    )


def payment_intent(**fields):
    """A PaymentIntent shaped the way the SDK hands it back."""
    values = {
        "id": "pi_123",
        "object": "payment_intent",
        "client_secret": "pi_123_secret_456",
        "amount": 2000,
        "currency": "gbp",
        "status": "requires_payment_method",
        "customer": None,
        "metadata": {},
        "created": 1700000000,
        "last_payment_error": None,
    }
    values.update(fields)
    return stripe.PaymentIntent.construct_from(values, "sk_test")


def test_health(client):
    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert "POST /webhook" in body["endpoints"]


def test_create_payment_intent_success(client, mocker):
    create = mocker.patch(
        "stripe_sandbox.routes.create_payment_intent",
        return_value=payment_intent(amount=5000, customer="cus_1", metadata={"order_id": "ORD-001"}),
    )

    response = client.post(
        "/create-payment-intent",
        json={"amount": 5000, "customerId": "cus_1", "metadata": {"order_id": "ORD-001"}}
    )

    assert response.status_code == 200
    assert response.json() == {
        "paymentIntentId": "pi_123",
        "clientSecret": "pi_123_secret_456",
        "amount": 5000,
        "currency": "gbp",
        "status": "requires_payment_method",
    }
    create.assert_called_once_with(5000, "gbp", "cus_1", {"order_id": "ORD-001"})


def test_create_payment_intent_sends_stripe_params(client, mocker):
    create = mocker.patch("stripe.PaymentIntent.create", return_value=payment_intent(amount=2500, currency="eur"))

    response = client.post("/create-payment-intent", json={"amount": 2500, "currency": "eur"})

    assert response.status_code == 200
    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 2500
    assert kwargs["currency"] == "eur"
    assert kwargs["automatic_payment_methods"] == {"enabled": True}
    assert "timestamp" in kwargs["metadata"]
    assert "customer" not in kwargs


@pytest.mark.parametrize("body", [
    {},
    {"amount": 0},
    {"amount": -100},
])
def test_create_payment_intent_rejects_non_positive_amount(client, mocker, body):
    create = mocker.patch("stripe.PaymentIntent.create")

    response = client.post("/create-payment-intent", json=body)

    assert response.status_code == 400
    assert response.json() == {
        "error": "Amount must be a positive integer (in pence/cents)",
        "type": "invalid_request_error",
    }
    create.assert_not_called()


@pytest.mark.parametrize("amount", ["5000", 50.5, True])
def test_create_payment_intent_rejects_non_integer_amount(client, mocker, amount):
    create = mocker.patch("stripe.PaymentIntent.create")

    response = client.post("/create-payment-intent", json={"amount": amount})

    assert response.status_code == 400
    assert response.json()["type"] == "invalid_request_error"
    assert response.json()["error"].startswith("amount")
    create.assert_not_called()


def test_create_payment_intent_rejects_malformed_json(client, mocker):
    create = mocker.patch("stripe.PaymentIntent.create")

    response = client.post(
        "/create-payment-intent",
        content=b'{"amount": 5000,',
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON body", "type": "invalid_request_error"}
    create.assert_not_called()


def test_create_payment_intent_stripe_error(client, mocker):
    mocker.patch("stripe.PaymentIntent.create", side_effect=card_declined())

    response = client.post("/create-payment-intent", json={"amount": 2000})

    assert response.status_code == 400
    assert response.json() == {"error": "Your card was declined.", "type": "card_error"}


def test_create_customer_success(client, mocker):
    customer = stripe.Customer.construct_from({
        "id": "cus_123",
        "object": "customer",
        "email": "user@example.com",
        "name": "Test User",
        "created": 1700000000,
        "metadata": {"internal_user_id": "USR-123"},
    }, "sk_test")
    create = mocker.patch("stripe.Customer.create", return_value=customer)

    response = client.post(
        "/create-customer",
        json={"email": "user@example.com", "name": "Test User", "metadata": {"internal_user_id": "USR-123"}}
    )

    assert response.status_code == 200
    assert response.json() == {
        "customerId": "cus_123",
        "email": "user@example.com",
        "name": "Test User",
        "created": "2023-11-14T22:13:20.000Z",
        "dashboardUrl": "https://dashboard.stripe.com/test/customers/cus_123",
    }
    kwargs = create.call_args.kwargs
    assert kwargs["metadata"]["internal_user_id"] == "USR-123"
    assert "created_at" in kwargs["metadata"]
    assert "phone" not in kwargs


@pytest.mark.parametrize("body", [{}, {"email": ""}, {"name": "No Email"}])
def test_create_customer_requires_email(client, mocker, body):
    create = mocker.patch("stripe.Customer.create")

    response = client.post("/create-customer", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Email is required to create a Customer"
    create.assert_not_called()


def test_create_customer_stripe_error(client, mocker):
    mocker.patch(
        "stripe.Customer.create",
        side_effect=stripe.InvalidRequestError("Invalid email address: nope", "email", code="email_invalid"),
    )

    response = client.post("/create-customer", json={"email": "nope"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid email address: nope"
    assert response.json()["type"] == "InvalidRequestError"


def test_payment_status_for_declined_intent(client, mocker):
    declined_intent = payment_intent(
        metadata={"order_id": "ORD-001"},
        last_payment_error={
            "type": "card_error",
            "code": "card_declined",
            "message": "Your card has insufficient funds.",
            "decline_code": "insufficient_funds",
        },
    )
    retrieve = mocker.patch("stripe.PaymentIntent.retrieve", return_value=declined_intent)

    response = client.get("/payment-status/pi_123")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "requires_payment_method"
    assert body["metadata"] == {"order_id": "ORD-001"}
    assert body["created"] == "2023-11-14T22:13:20.000Z"
    assert body["lastError"] == {
        "code": "card_declined",
        "message": "Your card has insufficient funds.",
        "declineCode": "insufficient_funds",
    }
    retrieve.assert_called_once_with("pi_123")


def test_payment_status_error_without_decline_code(client, mocker):
    intent = payment_intent(last_payment_error={"type": "api_error", "code": "processing_error", "message": "Try again"})
    mocker.patch("stripe.PaymentIntent.retrieve", return_value=intent)

    response = client.get("/payment-status/pi_123")

    assert response.status_code == 200
    assert response.json()["lastError"] == {"code": "processing_error", "message": "Try again", "declineCode": None}


def test_payment_status_without_error(client, mocker):
    intent = payment_intent(id="pi_ok", status="succeeded", amount=5000, customer="cus_1")
    mocker.patch("stripe.PaymentIntent.retrieve", return_value=intent)

    response = client.get("/payment-status/pi_ok")

    assert response.status_code == 200
    assert response.json()["lastError"] is None
    assert response.json()["customer"] == "cus_1"


def test_payment_status_invalid_prefix(client, mocker):
    retrieve = mocker.patch("stripe.PaymentIntent.retrieve")

    response = client.get("/payment-status/ch_123")

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid PaymentIntent ID. Should start with pi_"}
    retrieve.assert_not_called()


def test_payment_status_not_found(client, mocker):
    mocker.patch(
        "stripe.PaymentIntent.retrieve",
        side_effect=stripe.InvalidRequestError("No such payment_intent: 'pi_missing'", "intent", code="resource_missing"),
    )

    response = client.get("/payment-status/pi_missing")

    assert response.status_code == 404
    assert response.json() == {"error": "No such payment_intent: 'pi_missing'"}


def test_token_required_when_jwt_secret_set(client, mocker, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    create = mocker.patch("stripe.Customer.create")

    response = client.post("/create-customer", json={"email": "user@example.com"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or missing token"}
    create.assert_not_called()


def test_valid_token_accepted(client, mocker, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    token = jwt.encode({"sub": "ops"}, "test-secret", algorithm="HS256")
    customer = stripe.Customer.construct_from(
        {"id": "cus_9", "object": "customer", "email": "user@example.com", "name": None, "created": 1700000000},
        "sk_test",
    )
    mocker.patch("stripe.Customer.create", return_value=customer)

    response = client.post(
        "/create-customer",
        json={"email": "user@example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert response.status_code == 200
    assert response.json()["customerId"] == "cus_9"


def test_health_never_needs_token(client, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "test-secret")

    assert client.get("/").status_code == 200
