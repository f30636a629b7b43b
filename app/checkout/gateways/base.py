"""
Abstract base gateway for payment providers.

This module defines the contract every payment provider implements and
the value types exchanged between the payment adapter and a gateway.
A gateway only translates: it turns an OrderSnapshot and a token into the
provider's request, sends it, and turns the answer (or an asynchronous
notification) back into the types below. Order state, sessions, locking
and idempotency are handled by PaymentAdapter, never by a gateway.

Usage:
    class MyGateway(PaymentGateway):
        code = "mygateway"
        label = "My Gateway"

        def payment_form(self, order, session):
            ...

        def send_payment(self, request):
            ...

        def parse_notification(self, notification):
            ...

        def acknowledge(self, recognized):
            return NotificationAck(body="OK")
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from checkout.exceptions import GatewayConfigurationError

if TYPE_CHECKING:
    from checkout.models import CheckoutSession
    from checkout.snapshot import OrderSnapshot


# =============================================================================
# Order and Form Types
# =============================================================================


@dataclass
class PaymentOrder:
    """
    Minimal order facts a checkout needs.

    Attributes:
        id: Platform order identifier
        user_id: Platform user identifier (None for guest orders)
        customer_name: Name used for gateway customer profiles
        customer_email: E-mail used for gateway customer profiles
    """

    id: str
    user_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None


@dataclass
class FormField:
    """
    One field of a payment form.

    Attributes:
        code: Field name submitted back by the client
        label: Human-readable label
        type: Rendering type ('string', 'container' for gateway-hosted inputs)
        internal_type: Value type expected by the gateway
        default: Pre-filled value
        required: Whether the client must send a value
        public: Whether the value may be shown to the customer
    """

    code: str
    label: str
    type: str = "string"
    internal_type: str = "string"
    default: Any = ""
    required: bool = False
    public: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "label": self.label,
            "type": self.type,
            "internal_type": self.internal_type,
            "default": self.default,
            "required": self.required,
            "public": self.public,
        }


@dataclass
class FormDescriptor:
    """
    Instructions for the front-end to collect payment details out-of-band.

    Also used for redirects (3-D Secure, Payone REDIRECT): method GET,
    no fields.

    Attributes:
        url: Target URL the form is submitted to
        method: HTTP method ('POST' or 'GET')
        fields: Field definitions
        script_url: Client-side library to load, if any
        client_config: Values the client-side library is initialised with
    """

    url: str
    method: str = "POST"
    fields: list[FormField] = field(default_factory=list)
    script_url: str | None = None
    client_config: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "fields": [f.to_dict() for f in self.fields],
            "script_url": self.script_url,
            "client_config": self.client_config,
        }


# =============================================================================
# Outbound Request and Response Types
# =============================================================================


@dataclass
class PaymentRequest:
    """
    Everything a gateway needs to send one payment.

    Attributes:
        order: The order being paid
        snapshot: Line items and total of this attempt
        token: Client token (None when resuming a stored intent)
        customer_ref: Stored gateway customer reference, if any
        intent_ref: Stored non-terminal intent reference, if any
        attempt: Attempt number for gateway idempotency keys
        params: Remaining request parameters sent by the client
    """

    order: PaymentOrder
    snapshot: OrderSnapshot
    token: str | None = None
    customer_ref: str | None = None
    intent_ref: str | None = None
    attempt: int = 1
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayResponse:
    """
    Result of an outbound gateway call.

    Attributes:
        is_successful: Payment was authorized or captured
        is_redirect: Customer must be sent to redirect_url first
        is_pending: Outcome not known yet, wait for a notification
        redirect_url: Where to send the customer (3-D Secure, bank page)
        redirect_data: Values the client needs to follow the redirect
        transaction_reference: Gateway transaction ID
        intent_reference: Gateway intent ID to resume this payment
        customer_reference: Gateway customer ID returned with the payment
        message: Gateway message, if any
        raw: Raw gateway response (for debugging)
    """

    is_successful: bool
    is_redirect: bool = False
    is_pending: bool = False
    redirect_url: str | None = None
    redirect_data: dict[str, Any] = field(default_factory=dict)
    transaction_reference: str | None = None
    intent_reference: str | None = None
    customer_reference: str | None = None
    message: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Notification Types
# =============================================================================


@dataclass
class InboundNotification:
    """
    Raw asynchronous notification as received over HTTP.

    Attributes:
        body: Raw request body
        params: Decoded form or query parameters
        headers: Request headers (e.g., signatures)
    """

    body: bytes = b""
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request) -> InboundNotification:
        """Build from a Django HttpRequest."""
        # Body must be read before POST for the raw bytes to stay available
        body = request.body
        params = {key: request.POST.get(key) for key in request.POST}
        if not params:
            params = {key: request.GET.get(key) for key in request.GET}
        return cls(
            body=body,
            params=params,
            headers=dict(request.headers),
        )


@dataclass
class NotificationUpdate:
    """
    What a gateway extracted from a recognized notification.

    Attributes:
        order_id: Platform order identifier
        state: Target OrderPaymentState
        event_key: Gateway-unique delivery identifier
        sequence: Ordering key (higher is newer)
        transaction_reference: Gateway transaction ID, if carried
        payload: Data to keep for the audit trail
    """

    order_id: str
    state: str
    event_key: str
    sequence: int = 0
    transaction_reference: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class NotificationAck:
    """
    Literal HTTP acknowledgement a gateway expects for a notification.
    """

    body: str
    status: int = 200
    content_type: str = "text/plain"


# =============================================================================
# Abstract Gateway
# =============================================================================


class PaymentGateway(ABC):
    """
    Abstract base class for payment providers.

    Subclasses declare their settings in `config_attributes` (setting name
    mapped to a label and whether it is required) and receive the resolved
    values as `self.config`. Construction fails with
    GatewayConfigurationError when a required value is missing.

    Attributes:
        code: Gateway code used in URLs, lock keys and attribute keys
        label: Human-readable name
        authorize_only: Payments are only authorized and captured later
    """

    code: str = ""
    label: str = ""
    config_attributes: dict[str, dict[str, Any]] = {}

    def __init__(self, config: dict[str, Any] | None = None, authorize_only: bool = False) -> None:
        self.config = dict(config or {})
        self.authorize_only = authorize_only

        errors = {key: msg for key, msg in self.check_config(self.config).items() if msg}
        if errors:
            raise GatewayConfigurationError(
                f"{self.label or self.code} gateway is not configured",
                details={"gateway": self.code, "errors": errors},
            )

    @classmethod
    def from_settings(cls) -> PaymentGateway:
        """Build the gateway from Django settings."""
        raise NotImplementedError

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this gateway."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def check_config(self, attributes: dict[str, Any]) -> dict[str, str | None]:
        """
        Validate configuration attributes.

        Returns:
            Dict with every known attribute as key and an error message,
            or None when the value is fine
        """
        result: dict[str, str | None] = {}
        for key, definition in self.config_attributes.items():
            value = attributes.get(key)
            if definition.get("required") and (value is None or value == ""):
                result[key] = f"{definition.get('label', key)} is required"
            else:
                result[key] = None
        return result

    def attribute_key(self, name: str) -> str:
        """Namespace an order attribute key with this gateway's code."""
        return f"{self.code}.{name}"

    @abstractmethod
    def payment_form(self, order: PaymentOrder, session: CheckoutSession) -> FormDescriptor:
        """
        Describe the form the client uses to collect a payment token.

        Args:
            order: The order being paid
            session: The open checkout session

        Returns:
            FormDescriptor pointing back at the process endpoint
        """
        pass

    @abstractmethod
    def send_payment(self, request: PaymentRequest) -> GatewayResponse:
        """
        Send the payment to the gateway synchronously.

        Returns:
            GatewayResponse; a declined payment is either a response with
            is_successful False or a GatewayDeclineError

        Raises:
            GatewayDeclineError: Payment refused
            GatewayRequestError: Request rejected by the gateway
            GatewayUnavailableError: Gateway unreachable or erroring
            GatewayTimeoutError: No answer within the configured timeout
        """
        pass

    def create_customer(self, order: PaymentOrder) -> str | None:
        """
        Create a customer profile at the gateway.

        Gateways without customer profiles return None.
        """
        return None

    @abstractmethod
    def parse_notification(self, notification: InboundNotification) -> NotificationUpdate:
        """
        Verify and interpret an asynchronous notification.

        Raises:
            UnrecognizedNotificationError: No usable order reference, bad
                signature or an event that maps to no payment state
        """
        pass

    @abstractmethod
    def acknowledge(self, recognized: bool) -> NotificationAck:
        """Return the literal acknowledgement the gateway expects."""
        pass
