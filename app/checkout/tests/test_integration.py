"""
End-to-end checkout journeys through the HTTP endpoints.

Each journey uses a real gateway implementation; only the provider's
network boundary (Stripe SDK calls, the Payone Server API POST) is
patched.
"""

import hashlib
import json
from unittest.mock import patch

import pytest
import requests
import stripe
from django.urls import reverse

from checkout.baskets import cache_basket
from checkout.models import CheckoutSession, GatewayNotification
from checkout.sinks import DjangoOrderStatusSink
from checkout.state_machines import NotificationStatus, OrderPaymentState


@pytest.fixture
def order_sink():
    return DjangoOrderStatusSink()


@pytest.fixture
def cached_order(user_order, basket):
    cache_basket(user_order, basket)
    return user_order


# =============================================================================
# Payone
# =============================================================================


@pytest.fixture
def payone_settings(settings):
    settings.PAYONE_MERCHANT_ID = "10001"
    settings.PAYONE_PORTAL_ID = "2000001"
    settings.PAYONE_SUBACCOUNT_ID = "30001"
    settings.PAYONE_PORTAL_KEY = "secret-portal-key"
    settings.PAYONE_MODE = "test"
    settings.PAYONE_AUTHORIZE_ONLY = True
    settings.CHECKOUT_PAYMENT_URL_SELF = "https://shop.example.com/checkout/payment"
    return settings


def _transaction_status(txaction, sequence):
    return {
        "key": hashlib.md5(b"secret-portal-key").hexdigest(),
        "txaction": txaction,
        "txid": "200000001",
        "reference": "1001",
        "sequencenumber": str(sequence),
        "mode": "test",
    }


@pytest.mark.django_db
class TestPayoneJourney:
    def test_form_authorize_capture(
        self, authenticated_client, client, mock_redis, payone_settings, cached_order, order_sink
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "payone", "order_id": "1001"})
        notify_url = reverse("checkout:notify", kwargs={"gateway": "payone"})

        # 1. Payment form
        response = authenticated_client.post(process_url, {}, format="json")
        assert response.status_code == 200
        assert response.data["form"]["client_config"]["request"]["request"] == "creditcardcheck"
        assert CheckoutSession.objects.get(order_id="1001").state == "form_pending"

        # 2. Pseudo card number posted back, preauthorization approved
        with patch("checkout.gateways.payone_gateway.requests.post") as mock_post:
            mock_post.return_value.text = "status=APPROVED\ntxid=200000001\nuserid=555"
            response = authenticated_client.post(
                process_url, {"paymenttoken": "4100000000000001"}, format="json"
            )

        confirmation = response.data["confirmation"]
        assert confirmation["success"] is True
        assert confirmation["new_state"] == "authorized"
        assert confirmation["transaction_reference"] == "200000001"
        assert mock_post.call_args.kwargs["data"]["request"] == "preauthorization"
        assert mock_post.call_args.kwargs["data"]["amount"] == 3490

        # 3. Capture reported by TransactionStatus
        response = client.post(notify_url, _transaction_status("capture", 1))
        assert response.status_code == 200
        assert response.content == b"TSOK"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.RECEIVED
        assert not CheckoutSession.objects.filter(order_id="1001").exists()

        # 4. Duplicate delivery and a late 'appointed' change nothing
        client.post(notify_url, _transaction_status("capture", 1))
        response = client.post(notify_url, _transaction_status("appointed", 0))
        assert response.content == b"TSOK"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.RECEIVED
        assert order_sink.get_attribute("1001", "payone.transaction_ref") == "200000001"
        assert GatewayNotification.objects.filter(event_key="200000001:1:capture").count() == 1
        assert GatewayNotification.objects.get(event_key="200000001:0:appointed").status == (
            NotificationStatus.IGNORED
        )

    def test_declined_card(self, authenticated_client, mock_redis, payone_settings, cached_order, order_sink):
        process_url = reverse("checkout:process", kwargs={"gateway": "payone", "order_id": "1001"})

        with patch("checkout.gateways.payone_gateway.requests.post") as mock_post:
            mock_post.return_value.text = "status=ERROR\nerrorcode=877\ncustomermessage=Card expired"
            response = authenticated_client.post(
                process_url, {"paymenttoken": "4100000000000001"}, format="json"
            )

        assert response.status_code == 200
        assert response.data["confirmation"]["new_state"] == "refused"
        assert response.data["confirmation"]["message"] == "Card expired"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.REFUSED
        assert order_sink.get_attribute("1001", "payone.transaction_ref") is None

    def test_resubmit_after_timeout_waits_for_transaction_status(
        self, authenticated_client, client, mock_redis, payone_settings, cached_order, order_sink
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "payone", "order_id": "1001"})
        notify_url = reverse("checkout:notify", kwargs={"gateway": "payone"})

        with patch("checkout.gateways.payone_gateway.requests.post") as mock_post:
            mock_post.side_effect = requests.Timeout("read timed out")
            first = authenticated_client.post(process_url, {"paymenttoken": "4100000000000001"}, format="json")

            mock_post.side_effect = None
            mock_post.return_value.text = "status=ERROR\nerrorcode=911\nerrormessage=Reference number already exists"
            second = authenticated_client.post(process_url, {"paymenttoken": "4100000000000002"}, format="json")

        assert first.data["confirmation"]["requires_reconciliation"] is True
        assert second.data["confirmation"]["new_state"] == "pending"
        assert second.data["confirmation"]["requires_reconciliation"] is True
        assert mock_post.call_args.kwargs["data"]["pseudocardpan"] == "4100000000000001"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.PENDING

        response = client.post(notify_url, _transaction_status("appointed", 1))

        assert response.content == b"TSOK"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.AUTHORIZED
        assert order_sink.get_attribute("1001", "payone.transaction_ref") == "200000001"

    def test_notification_without_reference(self, client, mock_redis, payone_settings, order_sink):
        notify_url = reverse("checkout:notify", kwargs={"gateway": "payone"})
        params = _transaction_status("paid", 1)
        del params["reference"]

        response = client.post(notify_url, params)

        assert response.content == b"TSOK"
        assert GatewayNotification.objects.count() == 0
        assert order_sink.get_payment_state("1001") == OrderPaymentState.PENDING


# =============================================================================
# Stripe
# =============================================================================


@pytest.fixture
def stripe_settings(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_PUBLISHABLE_KEY = "pk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test"
    settings.STRIPE_AUTHORIZE_ONLY = False
    settings.STRIPE_CREATE_CUSTOMER = False
    return settings


def _intent(status="succeeded"):
    return {
        "id": "pi_1",
        "status": status,
        "client_secret": "pi_1_secret",
        "latest_charge": "ch_1" if status == "succeeded" else None,
        "metadata": {"order_id": "1001"},
    }


def _webhook_body(event_id="evt_1", event_type="payment_intent.succeeded", created=1700000000):
    return json.dumps(
        {
            "id": event_id,
            "type": event_type,
            "created": created,
            "data": {"object": _intent()},
        }
    )


@pytest.mark.django_db
class TestStripeJourney:
    def test_form_confirm_webhook(
        self, authenticated_client, client, mock_redis, stripe_settings, cached_order, order_sink
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "stripe", "order_id": "1001"})
        notify_url = reverse("checkout:notify", kwargs={"gateway": "stripe"})

        response = authenticated_client.post(process_url, {}, format="json")
        assert response.data["form"]["client_config"]["publishable_key"] == "pk_test_123"

        with patch("stripe.PaymentIntent") as mock_intent:
            mock_intent.create.return_value = _intent()
            response = authenticated_client.post(process_url, {"paymenttoken": "tok_visa"}, format="json")

        assert response.data["confirmation"]["new_state"] == "received"
        assert response.data["confirmation"]["transaction_reference"] == "ch_1"
        assert order_sink.get_attribute("1001", "stripe.intent_ref") == "pi_1"

        with patch("stripe.Webhook.construct_event"):
            response = client.post(
                notify_url,
                data=_webhook_body(),
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
            )

        assert response.status_code == 200
        assert response.content == b"OK"
        assert order_sink.get_payment_state("1001") == OrderPaymentState.RECEIVED
        assert GatewayNotification.objects.get(event_key="evt_1").status == NotificationStatus.IGNORED

    def test_timeout_then_webhook(
        self, authenticated_client, client, mock_redis, stripe_settings, cached_order, order_sink
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "stripe", "order_id": "1001"})
        notify_url = reverse("checkout:notify", kwargs={"gateway": "stripe"})

        with patch("stripe.PaymentIntent") as mock_intent:
            mock_intent.create.side_effect = stripe.APIConnectionError(message="Request timed out")
            response = authenticated_client.post(process_url, {"paymenttoken": "tok_visa"}, format="json")

        confirmation = response.data["confirmation"]
        assert confirmation["success"] is False
        assert confirmation["new_state"] == "pending"
        assert confirmation["requires_reconciliation"] is True
        assert order_sink.get_payment_state("1001") == OrderPaymentState.PENDING

        with patch("stripe.Webhook.construct_event"):
            client.post(
                notify_url,
                data=_webhook_body(),
                content_type="application/json",
                HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
            )

        assert order_sink.get_payment_state("1001") == OrderPaymentState.RECEIVED
        assert order_sink.get_attribute("1001", "stripe.transaction_ref") == "ch_1"
        assert not CheckoutSession.objects.filter(order_id="1001").exists()

    def test_resubmit_after_timeout_reuses_idempotency_key(
        self, authenticated_client, mock_redis, stripe_settings, cached_order
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "stripe", "order_id": "1001"})

        with patch("stripe.PaymentIntent") as mock_intent:
            mock_intent.create.side_effect = [
                stripe.APIConnectionError(message="Request timed out"),
                _intent(),
            ]
            authenticated_client.post(process_url, {"paymenttoken": "tok_visa"}, format="json")
            response = authenticated_client.post(process_url, {"paymenttoken": "tok_visa"}, format="json")

        keys = [c.kwargs["idempotency_key"] for c in mock_intent.create.call_args_list]
        assert keys[0] == keys[1]
        assert response.data["confirmation"]["success"] is True

    def test_new_token_after_timeout_replays_first_request(
        self, authenticated_client, mock_redis, stripe_settings, cached_order
    ):
        process_url = reverse("checkout:process", kwargs={"gateway": "stripe", "order_id": "1001"})

        with patch("stripe.PaymentIntent") as mock_intent:
            mock_intent.create.side_effect = [
                stripe.APIConnectionError(message="Request timed out"),
                _intent(),
            ]
            authenticated_client.post(process_url, {"paymenttoken": "tok_first"}, format="json")
            response = authenticated_client.post(process_url, {"paymenttoken": "tok_second"}, format="json")

        first, second = mock_intent.create.call_args_list
        assert first.kwargs["idempotency_key"] == second.kwargs["idempotency_key"]
        assert second.kwargs["payment_method_data"] == first.kwargs["payment_method_data"]
        assert second.kwargs["payment_method_data"]["card"]["token"] == "tok_first"
        assert response.data["confirmation"]["new_state"] == "received"

    def test_forged_webhook_is_dropped(self, client, mock_redis, stripe_settings, order_sink):
        notify_url = reverse("checkout:notify", kwargs={"gateway": "stripe"})

        response = client.post(
            notify_url,
            data=_webhook_body(),
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=forged",
        )

        assert response.status_code == 200
        assert order_sink.get_payment_state("1001") == OrderPaymentState.PENDING
        assert GatewayNotification.objects.count() == 0
