"""
Views for checkout app.

Endpoints:
    POST /api/v1/checkout/{gateway}/orders/{order_id}/process/
        Without a paymenttoken: returns the payment form
        With a paymenttoken: confirms the payment
    POST /api/v1/checkout/{gateway}/notify/
        Asynchronous gateway notifications (Stripe webhooks, Payone
        TransactionStatus)

Security:
    - The process endpoint requires authentication
    - The notify endpoint is CSRF-exempt; gateways authenticate
      notifications by signature or portal key
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from drf_spectacular.utils import OpenApiResponse, extend_schema, inline_serializer
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

from checkout.baskets import get_basket_loader
from checkout.exceptions import GatewayConfigurationError, LockAcquisitionError, UnknownGatewayError
from checkout.gateways import FormDescriptor, InboundNotification, get_gateway
from checkout.serializers import (
    ConfirmationSerializer,
    FormDescriptorSerializer,
    ProcessPaymentSerializer,
)
from checkout.services import PaymentAdapter
from checkout.snapshot import build_snapshot

logger = logging.getLogger(__name__)


def _error_status(error: BaseApplicationError) -> int:
    if isinstance(error, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(error, ExternalServiceError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(error, GatewayConfigurationError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class ProcessPaymentView(APIView):
    """
    Render the payment form or confirm a payment.

    POST /api/v1/checkout/{gateway}/orders/{order_id}/process/

    Request body:
        {}                                   # first visit, returns the form
        {"paymenttoken": "tok_visa"}         # confirms the payment

    Returns:
        {"form": {...}} or {"confirmation": {...}}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Process checkout",
        description=(
            "Returns the gateway's payment form when no payment token is posted. "
            "With a token, confirms the payment synchronously and returns the outcome."
        ),
        tags=["Checkout"],
        request=ProcessPaymentSerializer,
        responses={
            200: inline_serializer(
                name="ProcessPaymentResponse",
                fields={
                    "form": FormDescriptorSerializer(required=False),
                    "confirmation": ConfirmationSerializer(required=False),
                },
            ),
            400: OpenApiResponse(description="Invalid basket or missing payment token"),
            404: OpenApiResponse(description="Unknown gateway or order"),
            409: OpenApiResponse(description="Checkout for this order is already in progress"),
            502: OpenApiResponse(description="Gateway error"),
        },
    )
    def post(self, request, gateway: str, order_id: str):
        serializer = ProcessPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            adapter = PaymentAdapter(get_gateway(gateway))
            order, basket = get_basket_loader()(order_id, request.user)
            result = adapter.initiate(order, build_snapshot(basket), serializer.to_params())
        except BaseApplicationError as e:
            logger.info(
                f"Checkout request failed: {e.error_code}",
                extra={"gateway": gateway, "order_id": order_id, "error_code": e.error_code},
            )
            return Response(e.to_dict(), status=_error_status(e))

        if isinstance(result, FormDescriptor):
            return Response({"form": FormDescriptorSerializer(result).data})
        return Response({"confirmation": ConfirmationSerializer(result).data})


@csrf_exempt
@require_POST
def gateway_notification(request: HttpRequest, gateway: str) -> HttpResponse:
    """
    Receive an asynchronous gateway notification.

    The response body is the literal acknowledgement the gateway expects
    ('OK' for Stripe, 'TSOK' for Payone). Unrecognized and stale
    notifications are acknowledged too so the gateway stops retrying them.

    Returns:
        HttpResponse with status:
        - 200: Notification handled or dropped
        - 404: Unknown gateway
        - 409: Order is locked, the gateway should retry later
        - 503: Gateway not configured
    """
    try:
        adapter = PaymentAdapter(get_gateway(gateway))
    except UnknownGatewayError:
        return HttpResponse("Unknown gateway", status=404)
    except GatewayConfigurationError as e:
        logger.error(
            "Notification for unconfigured gateway",
            extra={"gateway": gateway, "details": e.details},
        )
        return HttpResponse("Gateway not configured", status=503)

    try:
        order_id = adapter.reconcile(InboundNotification.from_request(request))
    except LockAcquisitionError:
        logger.warning("Notification deferred, order is locked", extra={"gateway": gateway})
        return HttpResponse("Busy", status=409)

    ack = adapter.acknowledge(order_id)
    return HttpResponse(ack.body, status=ack.status, content_type=ack.content_type)
