"""
Pytest fixtures for gateway tests.

This module provides fixtures for testing the Stripe and Payone gateways,
including mock Stripe API responses, Payone Server API answers, error
conditions, and test data.

Sections:
    - Test Data Fixtures
    - Gateway Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Client Fixtures
    - Error Response Fixtures
    - Payone Fixtures
"""

import hashlib
import json
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe

from checkout.gateways import PayoneGateway, StripeGateway
from checkout.gateways.base import InboundNotification, PaymentRequest
from checkout.snapshot import build_snapshot
from checkout.tests.factories import BasketFactory, PaymentOrderFactory


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def order():
    return PaymentOrderFactory(id="1001", user_id="42")


@pytest.fixture
def snapshot():
    """34.90 EUR: 2 x Mug 12.50, 1 x Card 5.00, DHL 4.90."""
    return build_snapshot(BasketFactory(order_id="1001"))


@pytest.fixture
def payment_request(order, snapshot):
    """Factory for PaymentRequest objects."""

    def _create(**kwargs) -> PaymentRequest:
        values = {"order": order, "snapshot": snapshot, "token": "tok_visa"}
        values.update(kwargs)
        return PaymentRequest(**values)

    return _create


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def stripe_gateway():
    return StripeGateway(
        config={
            "secret_key": "sk_test_123",
            "publishable_key": "pk_test_123",
            "webhook_secret": "whsec_test",
            "payment_url": "https://shop.example.com/checkout/payment",
            "timeout": 10,
        }
    )


@pytest.fixture
def payone_gateway():
    return PayoneGateway(
        config={
            "merchant_id": "10001",
            "portal_id": "2000001",
            "subaccount_id": "30001",
            "portal_key": "secret-portal-key",
            "mode": "test",
            "api_url": "https://api.pay1.de/post-gateway/",
            "payment_url": "https://shop.example.com/checkout/payment",
            "timeout": 10,
        }
    )


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


class MockStripeObject(dict):
    """Mock Stripe API object with attribute access and to_dict support."""

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def to_dict(self) -> dict[str, Any]:
        return dict(self)


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "succeeded",
        amount: int = 3490,
        currency: str = "eur",
        latest_charge: str | None = "ch_test123456",
        customer: str | None = None,
        next_action: dict | None = None,
        last_payment_error: dict | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": f"{id}_secret_abc123",
                "latest_charge": latest_charge,
                "customer": customer,
                "next_action": next_action,
                "last_payment_error": last_payment_error,
                "metadata": metadata if metadata is not None else {"order_id": "1001"},
            }
        )

    return _create


@pytest.fixture
def stripe_event():
    """Build a raw Stripe webhook body for a PaymentIntent event."""

    def _create(
        event_type: str = "payment_intent.succeeded",
        event_id: str = "evt_test123",
        created: int = 1700000000,
        intent: dict | None = None,
    ) -> bytes:
        intent = intent or {
            "id": "pi_test123456",
            "object": "payment_intent",
            "status": "succeeded",
            "latest_charge": "ch_test123456",
            "metadata": {"order_id": "1001"},
        }
        return json.dumps(
            {
                "id": event_id,
                "object": "event",
                "type": event_type,
                "created": created,
                "data": {"object": intent},
            }
        ).encode()

    return _create


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_payment_intent():
    """Patch stripe.PaymentIntent for testing."""
    with patch("stripe.PaymentIntent") as mock:
        yield mock


@pytest.fixture
def mock_stripe_customer():
    """Patch stripe.Customer for testing."""
    with patch("stripe.Customer") as mock:
        yield mock


@pytest.fixture
def mock_construct_event():
    """Patch stripe.Webhook.construct_event to accept any signature."""
    with patch("stripe.Webhook.construct_event") as mock:
        yield mock


# =============================================================================
# Error Response Fixtures
# =============================================================================


@pytest.fixture
def card_declined_error():
    """Create a Stripe CardError for declined card."""
    return stripe.CardError(
        message="Your card was declined.",
        param=None,
        code="card_declined",
    )


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""
    return stripe.InvalidRequestError(
        message="No such token: 'tok_invalid'",
        param="payment_method_data",
        code="resource_missing",
    )


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(message="Too many requests")


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(message="Request timed out")


@pytest.fixture
def api_error():
    """Create a Stripe APIError (server-side error)."""
    return stripe.APIError(message="An error occurred with our API")


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(message="Invalid API Key provided")


@pytest.fixture
def idempotency_error():
    """Create a Stripe IdempotencyError (key reused with other parameters)."""
    return stripe.IdempotencyError(
        message="Keys for idempotent requests can only be used with the same parameters they were first used with."
    )


# =============================================================================
# Payone Fixtures
# =============================================================================


@pytest.fixture
def payone_answer():
    """Build a mocked requests.Response carrying a Server API answer."""

    def _create(**values: str) -> MagicMock:
        response = MagicMock()
        response.text = "\n".join(f"{key}={value}" for key, value in values.items())
        response.raise_for_status.return_value = None
        return response

    return _create


@pytest.fixture
def mock_requests_post():
    with patch("checkout.gateways.payone_gateway.requests.post") as mock:
        yield mock


@pytest.fixture
def transaction_status():
    """Build an InboundNotification for a Payone TransactionStatus call."""

    def _create(**overrides: str) -> InboundNotification:
        params = {
            "key": hashlib.md5(b"secret-portal-key").hexdigest(),
            "txaction": "appointed",
            "txid": "200000001",
            "reference": "1001",
            "sequencenumber": "0",
            "mode": "test",
            "price": "34.90",
            "currency": "EUR",
        }
        params.update(overrides)
        return InboundNotification(params={k: v for k, v in params.items() if v is not None})

    return _create
