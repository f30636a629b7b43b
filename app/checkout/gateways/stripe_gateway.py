"""
Stripe gateway using the PaymentIntents API.

All Stripe calls of the checkout go through StripeGateway to ensure
consistent error handling, timeouts, idempotency, and observability.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to checkout exceptions
- Structured logging with timing metrics
- Idempotency keys so a resubmitted confirm never charges twice
- Stored PaymentIntents are retrieved and resumed instead of recreated

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_PUBLISHABLE_KEY: Key handed to Stripe.js
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: Network retries done by the SDK (default: 0)
- STRIPE_AUTHORIZE_ONLY: Capture later (capture_method=manual)
- STRIPE_CREATE_CUSTOMER: Create a Stripe Customer per user

Usage:
    from checkout.gateways import get_gateway

    gateway = get_gateway("stripe")
    response = gateway.send_payment(
        PaymentRequest(order=order, snapshot=snapshot, token="tok_visa")
    )
"""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from typing import TYPE_CHECKING, Any

import stripe
from django.conf import settings

from checkout.exceptions import (
    GatewayDeclineError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    UnrecognizedNotificationError,
)
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
from checkout.state_machines import OrderPaymentState

if TYPE_CHECKING:
    from checkout.models import CheckoutSession


STRIPE_JS_URL = "https://js.stripe.com/v3/"

# PaymentIntent statuses
SUCCEEDED_STATUSES = frozenset({"succeeded", "requires_capture"})
RESUMABLE_STATUSES = frozenset({"requires_payment_method", "requires_confirmation", "requires_action", "processing"})

# Webhook event type -> order payment state
EVENT_STATES = {
    "payment_intent.amount_capturable_updated": OrderPaymentState.AUTHORIZED,
    "payment_intent.succeeded": OrderPaymentState.RECEIVED,
    "payment_intent.payment_failed": OrderPaymentState.REFUSED,
    "payment_intent.canceled": OrderPaymentState.CANCELED,
}


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The attempt number only moves forward after a definitive decline, so a
    confirm resubmitted after a timeout reuses the key of the first call
    and Stripe answers with the original PaymentIntent.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation='create_intent',
            entity_id='1001',
            attempt=1,
        )
        # Result: "create_intent:1001:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


def _transaction_ref(intent: Any) -> str | None:
    """Charge ID of a PaymentIntent, falling back to the intent ID."""
    charge = intent.get("latest_charge")
    if isinstance(charge, dict):
        charge = charge.get("id")
    return charge or intent.get("id")


def _header(headers: dict[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


# =============================================================================
# Stripe Gateway
# =============================================================================


class StripeGateway(PaymentGateway):
    """
    Payment gateway for Stripe PaymentIntents.

    Card details are tokenized by Stripe.js in the browser; the token is
    posted back as 'paymenttoken' and confirmed server-side.
    """

    code = "stripe"
    label = "Stripe"
    config_attributes = {
        "secret_key": {"label": "API key", "required": True},
        "publishable_key": {"label": "Publishable key", "required": True},
        "webhook_secret": {"label": "Webhook signing secret", "required": False},
        "payment_url": {"label": "Payment form target URL", "required": False},
    }

    @classmethod
    def from_settings(cls) -> StripeGateway:
        """Build the gateway from Django settings."""
        return cls(
            config={
                "secret_key": getattr(settings, "STRIPE_SECRET_KEY", ""),
                "publishable_key": getattr(settings, "STRIPE_PUBLISHABLE_KEY", ""),
                "webhook_secret": getattr(settings, "STRIPE_WEBHOOK_SECRET", ""),
                "payment_url": getattr(settings, "CHECKOUT_PAYMENT_URL_SELF", ""),
                "timeout": getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10),
                "max_retries": getattr(settings, "STRIPE_MAX_RETRIES", 0),
                "create_customer": getattr(settings, "STRIPE_CREATE_CUSTOMER", False),
            },
            authorize_only=getattr(settings, "STRIPE_AUTHORIZE_ONLY", False),
        )

    # =========================================================================
    # Configuration
    # =========================================================================

    def _configure_stripe(self) -> None:
        """Configure Stripe client with API key and timeout."""
        stripe.api_key = self.config["secret_key"]
        stripe.max_network_retries = self.config.get("max_retries", 0)
        timeout = self.config.get("timeout", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    # =========================================================================
    # Payment Form
    # =========================================================================

    def payment_form(self, order: PaymentOrder, session: CheckoutSession) -> FormDescriptor:
        fields = [
            FormField(
                code="paymenttoken",
                label="Authentication token",
                internal_type="integer",
                required=True,
                public=False,
            ),
            FormField(
                code="setup_future_usage",
                label="Save card for recurring payments",
                default="off_session",
                required=True,
                public=False,
            ),
            FormField(code="payment.cardno", label="Credit card number", type="container", internal_type="integer"),
            FormField(code="payment.expiry", label="Expiry", type="container"),
            FormField(code="payment.cvv", label="Verification number", type="container", internal_type="integer"),
        ]
        return FormDescriptor(
            url=self.config.get("payment_url") or "",
            method="POST",
            fields=fields,
            script_url=STRIPE_JS_URL,
            client_config={
                "publishable_key": self.config["publishable_key"],
                "token_field": "paymenttoken",
                "elements": [
                    {"element": "cardNumber", "field": "payment.cardno"},
                    {"element": "cardExpiry", "field": "payment.expiry"},
                    {"element": "cardCvc", "field": "payment.cvv"},
                ],
            },
        )

    # =========================================================================
    # Core Operations
    # =========================================================================

    def send_payment(self, request: PaymentRequest) -> GatewayResponse:
        """
        Confirm a payment with Stripe.

        A stored PaymentIntent is retrieved first: a succeeded or
        capturable intent is returned as is, a resumable one is confirmed
        (with the new token when one was sent). Otherwise a new intent is
        created and confirmed in one call.

        Raises:
            GatewayDeclineError: Card was declined
            GatewayRequestError: Invalid parameters or credentials
            GatewayUnavailableError: Stripe service unavailable
            GatewayTimeoutError: Request timed out
        """
        self._configure_stripe()
        logger = self.get_logger()

        log_context = {
            "operation": "send_payment",
            "gateway": self.code,
            "order_id": request.order.id,
            "amount": request.snapshot.total_minor_units,
            "currency": request.snapshot.currency,
            "intent_ref": request.intent_ref,
            "attempt": request.attempt,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            intent = None
            if request.intent_ref:
                intent = stripe.PaymentIntent.retrieve(request.intent_ref)
                status = intent.get("status")
                if status not in SUCCEEDED_STATUSES and status not in RESUMABLE_STATUSES:
                    # Canceled intents cannot be reused
                    intent = None
                elif request.token or status == "requires_confirmation":
                    if status not in SUCCEEDED_STATUSES and status != "processing":
                        intent = self._confirm_intent(intent, request)

            if intent is None:
                intent = self._create_intent(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_intent_id": intent.get("id"),
                    "status": intent.get("status"),
                    "duration_ms": duration_ms,
                },
            )
            return self._to_response(intent)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

    def _create_intent(self, request: PaymentRequest) -> Any:
        if not request.token:
            raise GatewayRequestError(
                "A payment token is required to create a PaymentIntent",
                gateway=self.code,
            )

        params: dict[str, Any] = {
            "amount": request.snapshot.total_minor_units,
            "currency": request.snapshot.currency.lower(),
            "confirm": True,
            "payment_method_data": {"type": "card", "card": {"token": request.token}},
            "capture_method": "manual" if self.authorize_only else "automatic",
            "metadata": {"order_id": str(request.order.id)},
            "idempotency_key": IdempotencyKeyGenerator.generate(
                operation="create_intent",
                entity_id=request.order.id,
                attempt=request.attempt,
            ),
        }
        if request.customer_ref:
            params["customer"] = request.customer_ref
            setup_future_usage = request.params.get("setup_future_usage")
            if setup_future_usage in ("off_session", "on_session"):
                params["setup_future_usage"] = setup_future_usage
        if self.config.get("payment_url"):
            params["return_url"] = self.config["payment_url"]

        return stripe.PaymentIntent.create(**params)

    def _confirm_intent(self, intent: Any, request: PaymentRequest) -> Any:
        params: dict[str, Any] = {
            "idempotency_key": IdempotencyKeyGenerator.generate(
                operation="confirm_intent",
                entity_id=request.order.id,
                attempt=request.attempt,
            ),
        }
        if request.token:
            params["payment_method_data"] = {"type": "card", "card": {"token": request.token}}
        if self.config.get("payment_url"):
            params["return_url"] = self.config["payment_url"]

        return stripe.PaymentIntent.confirm(intent["id"], **params)

    def _to_response(self, intent: Any) -> GatewayResponse:
        status = intent.get("status")
        raw = intent.to_dict() if hasattr(intent, "to_dict") else dict(intent)
        customer = intent.get("customer")
        if isinstance(customer, dict):
            customer = customer.get("id")

        if status in SUCCEEDED_STATUSES:
            return GatewayResponse(
                is_successful=True,
                transaction_reference=_transaction_ref(intent),
                intent_reference=intent.get("id"),
                customer_reference=customer,
                raw=raw,
            )

        if status == "requires_action":
            next_action = intent.get("next_action") or {}
            redirect = next_action.get("redirect_to_url") or {}
            return GatewayResponse(
                is_successful=False,
                is_redirect=True,
                redirect_url=redirect.get("url"),
                redirect_data={"client_secret": intent.get("client_secret")},
                intent_reference=intent.get("id"),
                raw=raw,
            )

        if status == "processing":
            return GatewayResponse(
                is_successful=False,
                is_pending=True,
                intent_reference=intent.get("id"),
                raw=raw,
            )

        error = intent.get("last_payment_error") or {}
        return GatewayResponse(
            is_successful=False,
            intent_reference=intent.get("id"),
            message=error.get("message"),
            raw=raw,
        )

    def create_customer(self, order: PaymentOrder) -> str | None:
        """
        Create a Stripe Customer for the order's user.

        Returns None when customer creation is disabled or the order
        belongs to a guest.
        """
        if not self.config.get("create_customer") or not order.user_id:
            return None

        self._configure_stripe()
        logger = self.get_logger()

        log_context = {
            "operation": "create_customer",
            "gateway": self.code,
            "user_id": order.user_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.create(
                description=order.customer_name,
                email=order.customer_email,
                metadata={"user_id": str(order.user_id)},
                idempotency_key=IdempotencyKeyGenerator.generate(
                    operation="create_customer",
                    entity_id=order.user_id,
                ),
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "customer_id": customer.id, "duration_ms": duration_ms},
            )
            return customer.id

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Notifications
    # =========================================================================

    def parse_notification(self, notification: InboundNotification) -> NotificationUpdate:
        """
        Verify and interpret a Stripe webhook event.

        Raises:
            UnrecognizedNotificationError: Bad signature, unhandled event
                type or no order_id in the PaymentIntent metadata
        """
        secret = self.config.get("webhook_secret")
        signature = _header(notification.headers, "Stripe-Signature")
        if not secret or not signature:
            raise UnrecognizedNotificationError(
                "Stripe webhook without signature or signing secret",
                details={"gateway": self.code},
            )

        try:
            stripe.Webhook.construct_event(notification.body, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise UnrecognizedNotificationError(
                "Invalid webhook signature",
                details={"gateway": self.code, "error": str(e)},
            ) from e

        event = json.loads(notification.body)
        event_type = event.get("type")
        state = EVENT_STATES.get(event_type)
        if state is None:
            raise UnrecognizedNotificationError(
                f"Unhandled Stripe event type: {event_type}",
                details={"gateway": self.code, "event_id": event.get("id")},
            )

        intent = (event.get("data") or {}).get("object") or {}
        order_id = (intent.get("metadata") or {}).get("order_id")
        if not order_id:
            raise UnrecognizedNotificationError(
                "Stripe event carries no order reference",
                details={"gateway": self.code, "event_id": event.get("id")},
            )

        transaction_ref = None
        if state in (OrderPaymentState.AUTHORIZED, OrderPaymentState.RECEIVED):
            transaction_ref = _transaction_ref(intent)

        return NotificationUpdate(
            order_id=str(order_id),
            state=state,
            event_key=event["id"],
            sequence=int(event.get("created") or 0),
            transaction_reference=transaction_ref,
            payload={
                "event_id": event["id"],
                "event_type": event_type,
                "payment_intent_id": intent.get("id"),
                "status": intent.get("status"),
            },
        )

    def acknowledge(self, recognized: bool) -> NotificationAck:
        return NotificationAck(body="OK", status=200)

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_stripe_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to checkout exceptions.

        Raises:
            GatewayDeclineError: Card was declined
            GatewayRequestError: Invalid request or authentication failure
            GatewayUnavailableError: Rate limited or Stripe server error
            GatewayTimeoutError: Connection failed or timed out
        """
        logger = self.get_logger()

        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, GatewayRequestError):
            raise error

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None) or error.code
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise GatewayDeclineError(
                str(error.user_message or error),
                gateway=self.code,
                gateway_code=decline_code,
            )

        elif isinstance(error, stripe.IdempotencyError):
            # Key already used with other parameters: the first call reached Stripe
            logger.error("Idempotency key reused with different parameters", extra=log_context)
            raise GatewayTimeoutError(
                "An earlier attempt is still unresolved. The payment will be reconciled.",
                gateway=self.code,
                gateway_code="idempotency_error",
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise GatewayRequestError(
                str(error),
                gateway=self.code,
                gateway_code=error.code,
            )

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise GatewayRequestError(
                "Stripe authentication failed",
                gateway=self.code,
                gateway_code="authentication_error",
            )

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise GatewayUnavailableError(
                "Stripe rate limit exceeded. Please retry.",
                gateway=self.code,
                gateway_code="rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            # Outcome unknown: the request may have reached Stripe
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayTimeoutError(
                "No response from Stripe. The payment will be reconciled.",
                gateway=self.code,
                gateway_code="api_connection_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Stripe service error. Please retry.",
                gateway=self.code,
                gateway_code="api_error",
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                f"Unexpected Stripe error: {error}",
                gateway=self.code,
                gateway_code="unknown_error",
            )
