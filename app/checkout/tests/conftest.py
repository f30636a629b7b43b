"""
Pytest fixtures for checkout tests.

Sections:
    - Infrastructure Fixtures (Redis lock connection)
    - Basket, Order and Client Fixtures
    - Gateway Fixtures
    - Adapter Fixtures
"""

import pytest
from rest_framework.test import APIClient

from checkout.gateways import PaymentGateway
from checkout.gateways.base import FormDescriptor, GatewayResponse, NotificationAck
from checkout.services import PaymentAdapter
from checkout.sinks import DjangoOrderStatusSink
from checkout.snapshot import build_snapshot
from checkout.tests.factories import BasketFactory, PaymentOrderFactory, UserFactory


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def mock_redis(mocker):
    """Mock Redis for distributed locking."""
    mock_redis = mocker.MagicMock()
    mock_redis.set.return_value = True
    mock_redis.get.return_value = None
    mock_redis.delete.return_value = 1
    mock_redis.eval.return_value = 1

    mocker.patch(
        "checkout.locks.get_redis_connection",
        return_value=mock_redis,
    )
    return mock_redis


# =============================================================================
# Basket and Order Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def api_client() -> APIClient:
    """Return unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user) -> APIClient:
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture
def basket():
    """Basket totalling 34.90 EUR incl. 4.90 delivery."""
    return BasketFactory(order_id="1001")


@pytest.fixture
def snapshot(basket):
    return build_snapshot(basket)


@pytest.fixture
def order():
    """Guest order matching the basket fixture."""
    return PaymentOrderFactory(id="1001")


@pytest.fixture
def user_order(user):
    """Order placed by the test user."""
    return PaymentOrderFactory(
        id="1001",
        user_id=str(user.pk),
        customer_email=user.email,
    )


# =============================================================================
# Gateway Fixtures
# =============================================================================


class FakeGateway(PaymentGateway):
    """
    Scriptable gateway for adapter tests.

    Set `responses` to a list of GatewayResponse objects or exceptions;
    each send_payment() call consumes the next one. `updates` works the
    same way for parse_notification().
    """

    code = "fake"
    label = "Fake"

    def __init__(self, authorize_only: bool = False) -> None:
        super().__init__(config={"payment_url": "https://shop.example.com/pay"}, authorize_only=authorize_only)
        self.responses: list = []
        self.updates: list = []
        self.requests: list = []
        self.customer_calls = 0
        self.customer_ref: str | None = None

    def payment_form(self, order, session):
        return FormDescriptor(url="https://shop.example.com/pay", client_config={"session": str(session.id)})

    def send_payment(self, request):
        self.requests.append(request)
        outcome = self.responses.pop(0) if self.responses else GatewayResponse(is_successful=True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def create_customer(self, order):
        self.customer_calls += 1
        return self.customer_ref

    def parse_notification(self, notification):
        outcome = self.updates.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def acknowledge(self, recognized):
        return NotificationAck(body="ACK" if recognized else "NACK")


@pytest.fixture
def fake_gateway():
    return FakeGateway()


# =============================================================================
# Adapter Fixtures
# =============================================================================


@pytest.fixture
def sink(db):
    return DjangoOrderStatusSink()


@pytest.fixture
def adapter(db, mock_redis, fake_gateway, sink):
    """PaymentAdapter over the scriptable gateway."""
    return PaymentAdapter(fake_gateway, sink=sink)


@pytest.fixture
def authorizing_gateway():
    return FakeGateway(authorize_only=True)


@pytest.fixture
def authorizing_adapter(db, mock_redis, authorizing_gateway, sink):
    """PaymentAdapter configured for a separate capture step."""
    return PaymentAdapter(authorizing_gateway, sink=sink)

