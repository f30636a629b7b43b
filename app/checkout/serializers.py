"""
DRF serializers for checkout app.

This module provides serializers for:
- The process request posted by the payment form
- Payment form descriptors returned to the client
- Confirmation results

Related files:
    - gateways/base.py: FormDescriptor, FormField
    - services/payment_adapter.py: Confirmation
    - views.py: Checkout API views
"""

from __future__ import annotations

from rest_framework import serializers


class ProcessPaymentSerializer(serializers.Serializer):
    """
    Values posted back by the payment form.

    Fields:
        paymenttoken: Token created by the gateway's client-side script
        setup_future_usage: Store the card for later payments
        params: Further gateway-specific form values
    """

    paymenttoken = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=512,
    )
    setup_future_usage = serializers.ChoiceField(
        choices=["off_session", "on_session"],
        required=False,
    )
    params = serializers.DictField(
        child=serializers.CharField(allow_blank=True),
        required=False,
    )

    def to_params(self) -> dict:
        """Flatten validated data into the adapter's request parameters."""
        data = dict(self.validated_data)
        params = dict(data.pop("params", {}))
        params.update({key: value for key, value in data.items() if value not in (None, "")})
        return params


class FormFieldSerializer(serializers.Serializer):
    code = serializers.CharField(read_only=True)
    label = serializers.CharField(read_only=True)
    type = serializers.CharField(read_only=True)
    internal_type = serializers.CharField(read_only=True)
    default = serializers.JSONField(read_only=True)
    required = serializers.BooleanField(read_only=True)
    public = serializers.BooleanField(read_only=True)


class FormDescriptorSerializer(serializers.Serializer):
    """
    Payment form or redirect instructions.

    Usage:
        serializer = FormDescriptorSerializer(form)
    """

    url = serializers.CharField(read_only=True)
    method = serializers.CharField(read_only=True)
    fields = FormFieldSerializer(many=True, read_only=True)
    script_url = serializers.CharField(read_only=True, allow_null=True)
    client_config = serializers.JSONField(read_only=True)


class ConfirmationSerializer(serializers.Serializer):
    """
    Result of a payment confirmation.

    Usage:
        serializer = ConfirmationSerializer(confirmation)
    """

    success = serializers.BooleanField(read_only=True)
    new_state = serializers.CharField(read_only=True)
    transaction_reference = serializers.CharField(read_only=True, allow_null=True)
    redirect = FormDescriptorSerializer(read_only=True, allow_null=True)
    requires_reconciliation = serializers.BooleanField(read_only=True)
    message = serializers.CharField(read_only=True, allow_null=True)
