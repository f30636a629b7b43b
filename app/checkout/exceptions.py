"""
Checkout-specific exceptions for payment adapter operations.

This module provides the exception hierarchy used by the snapshot builder,
the payment gateways and the payment adapter.

Exception Hierarchy:
    CheckoutError (base for checkout domain)
    ├── InvalidBasketError - Malformed basket input (propagates)
    ├── MissingPaymentTokenError - Confirm requested without a token (propagates)
    ├── GatewayConfigurationError - Gateway settings incomplete (propagates)
    ├── UnknownGatewayError - No gateway registered under a code (propagates)
    ├── GatewayError - Base for outbound gateway failures
    │   ├── GatewayDeclineError - Payment refused (business outcome)
    │   ├── GatewayRequestError - Request rejected by gateway (permanent)
    │   ├── GatewayUnavailableError - Gateway unreachable or erroring (transient)
    │   └── GatewayTimeoutError - No answer within the configured timeout
    ├── UnrecognizedNotificationError - Notification without usable order reference
    └── StaleNotificationError - Out-of-order notification

    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Only InvalidBasketError, MissingPaymentTokenError, GatewayConfigurationError
and UnknownGatewayError reach callers of PaymentAdapter. GatewayError
subclasses are resolved into a Confirmation; notification errors are
logged and dropped by reconcile().

Usage:
    from checkout.exceptions import GatewayDeclineError, GatewayTimeoutError

    try:
        response = gateway.send_payment(request)
    except GatewayTimeoutError:
        # Outcome unknown, wait for the notification
        ...
    except GatewayDeclineError as e:
        logger.info(f"Payment declined: {e.gateway_code}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Checkout Domain Exceptions
# =============================================================================


class CheckoutError(BaseApplicationError):
    """
    Base exception for all checkout operations.

    Example:
        try:
            adapter.initiate(order, snapshot, params)
        except CheckoutError as e:
            logger.error(f"Checkout failed: {e}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "CHECKOUT_ERROR"


class InvalidBasketError(CheckoutError, ValidationError):
    """
    Raised when a basket cannot be turned into an order snapshot.

    Use for:
    - Non-positive or non-integer quantities
    - Prices or shipping costs that are not finite non-negative decimals
    - Tax rates that are not finite decimals

    Raised before any network call is made.

    Example:
        raise InvalidBasketError(
            "Quantity must be a positive integer",
            details={"line": 0, "field": "quantity", "value": "-1"},
        )
    """

    default_error_code: str = "INVALID_BASKET"


class MissingPaymentTokenError(CheckoutError, ValidationError):
    """
    Raised when confirm() is called with neither a payment token nor a
    stored payment intent to resume.
    """

    default_error_code: str = "MISSING_PAYMENT_TOKEN"


class GatewayConfigurationError(CheckoutError):
    """
    Raised when a gateway is constructed with incomplete settings.

    Attributes:
        details: Contains the gateway code and the problems found per setting

    Example:
        raise GatewayConfigurationError(
            "Stripe gateway is not configured",
            details={"gateway": "stripe", "errors": {"STRIPE_SECRET_KEY": "..."}},
        )
    """

    default_error_code: str = "GATEWAY_NOT_CONFIGURED"


class UnknownGatewayError(CheckoutError, NotFoundError):
    """Raised when no gateway is registered under the requested code."""

    default_error_code: str = "GATEWAY_NOT_FOUND"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(CheckoutError, ExternalServiceError):
    """
    Base exception for outbound gateway calls.

    Provides common attributes for gateway error handling:
    - gateway: Code of the gateway that failed
    - gateway_code: Gateway's own error or decline code
    - is_retryable: Whether the same request may be sent again

    These never escape PaymentAdapter.confirm(); each subclass maps to
    an OrderPaymentState there.
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        gateway: str | None = None,
        gateway_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if gateway:
            details["gateway"] = gateway
        if gateway_code:
            details["gateway_code"] = gateway_code
        super().__init__(message, error_code=error_code, details=details)
        self.gateway = gateway
        self.gateway_code = gateway_code


# -----------------------------------------------------------------------------
# Permanent Errors (order is refused)
# -----------------------------------------------------------------------------


class GatewayDeclineError(GatewayError):
    """
    Payment was declined by the gateway or the issuing bank.

    This is an expected business outcome, recorded as REFUSED.
    The gateway_code attribute contains the decline reason when available.
    """

    default_error_code: str = "PAYMENT_DECLINED"


class GatewayRequestError(GatewayError):
    """
    Gateway rejected the request itself.

    Possible causes:
    - Invalid or already used payment token
    - Invalid amount or currency
    - Invalid credentials

    Note:
        This usually indicates a configuration or integration bug.
        The order is still recorded as REFUSED.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"


# -----------------------------------------------------------------------------
# Transient Errors (outcome unknown, reconcile later)
# -----------------------------------------------------------------------------


class GatewayUnavailableError(GatewayError):
    """
    Gateway is temporarily unavailable.

    This covers connection failures, rate limiting and 5xx answers.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    Gateway call timed out.

    The request was sent but no response arrived within the configured
    timeout (STRIPE_API_TIMEOUT_SECONDS / PAYONE_API_TIMEOUT_SECONDS).

    IMPORTANT: The payment may have succeeded on the gateway's side.
    The order stays PENDING and waits for reconciliation; it is never
    treated as success.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Notification Exceptions
# =============================================================================


class UnrecognizedNotificationError(CheckoutError):
    """
    Raised when an asynchronous notification carries no usable order reference.

    Use for:
    - Missing reference / order_id
    - Bad signature or portal key
    - Event types that do not map to a payment state
    """

    default_error_code: str = "UNRECOGNIZED_NOTIFICATION"


class StaleNotificationError(CheckoutError):
    """
    Raised when a notification arrives out of order.

    Attributes:
        details: Contains current_state, target_state and sequence numbers
    """

    default_error_code: str = "STALE_NOTIFICATION"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    This exception indicates that another request holds the lock for the
    same order and it couldn't be acquired within the timeout period.

    Attributes:
        details: Contains key and timeout information

    Note:
        This exception inherits from ConflictError (HTTP 409) because
        it represents a resource contention conflict.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    Wraps django-fsm's TransitionNotAllowed for checkout sessions and
    guards forward-only moves of the order payment state.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            session.collect_token(token)
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot collect token from '{session.state}' state",
                details={
                    "current_state": session.state,
                    "target_state": "token_collected",
                    "transition": "collect_token",
                }
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Checkout domain
    "CheckoutError",
    "InvalidBasketError",
    "MissingPaymentTokenError",
    "GatewayConfigurationError",
    "UnknownGatewayError",
    # Gateway
    "GatewayError",
    "GatewayDeclineError",
    "GatewayRequestError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    # Notifications
    "UnrecognizedNotificationError",
    "StaleNotificationError",
    # Concurrency control
    "LockAcquisitionError",
    "InvalidStateTransitionError",
]
