"""
Payment gateways for external payment providers.

All outbound payment calls and all asynchronous notifications go through
a PaymentGateway. Gateways are registered by code and built from settings
on demand.

Usage:
    from checkout.gateways import get_gateway

    gateway = get_gateway("payone")
    form = gateway.payment_form(order, session)

    # Register a custom gateway
    @register_gateway
    class MyGateway(PaymentGateway):
        code = "mygateway"
        ...
"""

from __future__ import annotations

import logging

from django.conf import settings

from checkout.exceptions import UnknownGatewayError
from checkout.gateways.base import (
    FormDescriptor,
    FormField,
    GatewayResponse,
    InboundNotification,
    NotificationAck,
    NotificationUpdate,
    PaymentGateway,
    PaymentOrder,
    PaymentRequest,
)
from checkout.gateways.payone_gateway import PayoneGateway
from checkout.gateways.stripe_gateway import IdempotencyKeyGenerator, StripeGateway

logger = logging.getLogger(__name__)


# =============================================================================
# Gateway Registry
# =============================================================================


# Maps gateway codes to gateway classes
GATEWAY_CLASSES: dict[str, type[PaymentGateway]] = {}


def register_gateway(gateway_class: type[PaymentGateway]) -> type[PaymentGateway]:
    """
    Class decorator to register a gateway under its code.

    Usage:
        @register_gateway
        class MyGateway(PaymentGateway):
            code = "mygateway"
    """
    GATEWAY_CLASSES[gateway_class.code] = gateway_class
    logger.debug(f"Registered payment gateway {gateway_class.code}")
    return gateway_class


register_gateway(StripeGateway)
register_gateway(PayoneGateway)


def get_gateway(code: str) -> PaymentGateway:
    """
    Build the gateway registered under code from settings.

    Only codes listed in CHECKOUT_GATEWAYS are served.

    Raises:
        UnknownGatewayError: No enabled gateway with this code
        GatewayConfigurationError: Gateway settings are incomplete
    """
    enabled = getattr(settings, "CHECKOUT_GATEWAYS", list(GATEWAY_CLASSES))
    gateway_class = GATEWAY_CLASSES.get(code)
    if gateway_class is None or code not in enabled:
        raise UnknownGatewayError(
            f"Unknown payment gateway '{code}'",
            details={"gateway": code},
        )
    return gateway_class.from_settings()


__all__ = [
    "FormDescriptor",
    "FormField",
    "GATEWAY_CLASSES",
    "GatewayResponse",
    "IdempotencyKeyGenerator",
    "InboundNotification",
    "NotificationAck",
    "NotificationUpdate",
    "PaymentGateway",
    "PaymentOrder",
    "PaymentRequest",
    "PayoneGateway",
    "StripeGateway",
    "get_gateway",
    "register_gateway",
]
