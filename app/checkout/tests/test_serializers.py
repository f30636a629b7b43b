"""
Tests for checkout serializers.
"""

from checkout.gateways.base import FormDescriptor, FormField
from checkout.serializers import ConfirmationSerializer, FormDescriptorSerializer, ProcessPaymentSerializer
from checkout.services import Confirmation
from checkout.state_machines import OrderPaymentState


class TestProcessPaymentSerializer:
    def test_empty_body_is_valid(self):
        serializer = ProcessPaymentSerializer(data={})

        assert serializer.is_valid()
        assert serializer.to_params() == {}

    def test_flattens_gateway_params(self):
        serializer = ProcessPaymentSerializer(
            data={
                "paymenttoken": "tok_visa",
                "setup_future_usage": "off_session",
                "params": {"clearingtype": "cc"},
            }
        )

        assert serializer.is_valid(), serializer.errors
        assert serializer.to_params() == {
            "paymenttoken": "tok_visa",
            "setup_future_usage": "off_session",
            "clearingtype": "cc",
        }

    def test_blank_token_is_dropped(self):
        serializer = ProcessPaymentSerializer(data={"paymenttoken": ""})

        assert serializer.is_valid()
        assert "paymenttoken" not in serializer.to_params()

    def test_named_fields_win_over_params(self):
        serializer = ProcessPaymentSerializer(
            data={"paymenttoken": "tok_visa", "params": {"paymenttoken": "tok_other"}}
        )

        assert serializer.is_valid()
        assert serializer.to_params()["paymenttoken"] == "tok_visa"

    def test_rejects_unknown_setup_future_usage(self):
        serializer = ProcessPaymentSerializer(data={"setup_future_usage": "always"})

        assert not serializer.is_valid()
        assert "setup_future_usage" in serializer.errors


class TestFormDescriptorSerializer:
    def test_serializes_fields(self):
        form = FormDescriptor(
            url="https://shop.example.com/pay",
            fields=[FormField(code="paymenttoken", label="Token", required=True, public=False)],
            script_url="https://js.stripe.com/v3/",
            client_config={"publishable_key": "pk_test_123"},
        )

        data = FormDescriptorSerializer(form).data

        assert data["url"] == "https://shop.example.com/pay"
        assert data["method"] == "POST"
        assert data["script_url"] == "https://js.stripe.com/v3/"
        assert data["client_config"] == {"publishable_key": "pk_test_123"}
        assert data["fields"][0]["code"] == "paymenttoken"
        assert data["fields"][0]["required"] is True
        assert data["fields"][0]["public"] is False


class TestConfirmationSerializer:
    def test_success(self):
        data = ConfirmationSerializer(
            Confirmation(success=True, new_state=OrderPaymentState.RECEIVED, transaction_reference="tx1")
        ).data

        assert data["success"] is True
        assert data["new_state"] == "received"
        assert data["transaction_reference"] == "tx1"
        assert data["redirect"] is None
        assert data["requires_reconciliation"] is False

    def test_redirect(self):
        confirmation = Confirmation(
            success=False,
            new_state=OrderPaymentState.PENDING,
            redirect=FormDescriptor(url="https://bank.example.com/3ds", method="GET"),
        )

        data = ConfirmationSerializer(confirmation).data

        assert data["redirect"]["url"] == "https://bank.example.com/3ds"
        assert data["redirect"]["method"] == "GET"
        assert data["redirect"]["fields"] == []

    def test_matches_to_dict(self):
        confirmation = Confirmation(
            success=False,
            new_state=OrderPaymentState.PENDING,
            requires_reconciliation=True,
            message="No answer",
        )

        assert dict(ConfirmationSerializer(confirmation).data) == confirmation.to_dict()
