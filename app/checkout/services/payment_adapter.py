"""
Payment adapter coordinating checkouts across gateways.

PaymentAdapter is the single, gateway-agnostic control flow of a checkout.
It is composed with a PaymentGateway (Stripe, Payone, ...) rather than
subclassed per provider, and it owns everything that must behave the same
for every provider:

- The CheckoutSession handshake (form -> token -> confirmation)
- Forward-only order payment state written through the Order Status Sink
- Per-order locking of confirm and reconcile
- Idempotent resubmits and notifications
- Translation of gateway failures into a Confirmation

Usage:
    from checkout.gateways import get_gateway
    from checkout.services import PaymentAdapter
    from checkout.snapshot import build_snapshot

    adapter = PaymentAdapter(get_gateway("stripe"))
    result = adapter.initiate(order, build_snapshot(basket), request.data)

    if isinstance(result, FormDescriptor):
        # Render the payment form, the client posts back a paymenttoken
        ...
    elif result.success:
        # Order is AUTHORIZED or RECEIVED
        ...

    # Asynchronous notification
    order_id = adapter.reconcile(InboundNotification.from_request(request))
    ack = adapter.acknowledge(order_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from checkout.customers import CustomerRefStore
from checkout.exceptions import (
    GatewayDeclineError,
    GatewayError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
    InvalidStateTransitionError,
    MissingPaymentTokenError,
    StaleNotificationError,
    UnrecognizedNotificationError,
)
from checkout.gateways.base import FormDescriptor, PaymentRequest
from checkout.locks import order_lock
from checkout.models import CheckoutSession, GatewayNotification
from checkout.sinks import get_order_sink
from checkout.state_machines import (
    CheckoutSessionState,
    OrderPaymentState,
    can_transition,
    is_terminal,
)

if TYPE_CHECKING:
    from checkout.gateways.base import (
        GatewayResponse,
        InboundNotification,
        NotificationAck,
        NotificationUpdate,
        PaymentGateway,
        PaymentOrder,
    )
    from checkout.sinks import OrderStatusSink
    from checkout.snapshot import OrderSnapshot


logger = logging.getLogger(__name__)

TOKEN_PARAM = "paymenttoken"

OPEN_SESSION_STATES = (
    CheckoutSessionState.FORM_PENDING,
    CheckoutSessionState.TOKEN_COLLECTED,
)


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class Confirmation:
    """
    Outcome of a confirm call.

    Attributes:
        success: Payment was authorized or captured
        new_state: OrderPaymentState of the order after the call
        transaction_reference: Gateway transaction ID on success
        redirect: Where the customer must go next (3-D Secure, bank page)
        requires_reconciliation: Outcome unknown, a notification will settle it
        message: Gateway or adapter message for the customer
    """

    success: bool
    new_state: str
    transaction_reference: str | None = None
    redirect: FormDescriptor | None = None
    requires_reconciliation: bool = False
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "new_state": str(self.new_state),
            "transaction_reference": self.transaction_reference,
            "redirect": self.redirect.to_dict() if self.redirect else None,
            "requires_reconciliation": self.requires_reconciliation,
            "message": self.message,
        }


# =============================================================================
# Payment Adapter
# =============================================================================


class PaymentAdapter:
    """
    Gateway-agnostic checkout control flow.

    Args:
        gateway: Provider-specific translation layer
        sink: Order Status Sink (defaults to CHECKOUT_ORDER_SINK)
        customers: Customer reference store
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        sink: OrderStatusSink | None = None,
        customers: type[CustomerRefStore] = CustomerRefStore,
    ) -> None:
        self.gateway = gateway
        self.sink = sink or get_order_sink()
        self.customers = customers

    # =========================================================================
    # Attribute Keys
    # =========================================================================

    @property
    def intent_key(self) -> str:
        return self.gateway.attribute_key("intent_ref")

    @property
    def transaction_key(self) -> str:
        return self.gateway.attribute_key("transaction_ref")

    @property
    def sequence_key(self) -> str:
        return self.gateway.attribute_key("notification_seq")

    def _log_context(self, order_id: str, operation: str) -> dict[str, Any]:
        return {"operation": operation, "gateway": self.gateway.code, "order_id": order_id}

    # =========================================================================
    # Initiate
    # =========================================================================

    def initiate(
        self,
        order: PaymentOrder,
        snapshot: OrderSnapshot,
        params: dict[str, Any] | None = None,
    ) -> FormDescriptor | Confirmation:
        """
        Start or continue a checkout.

        Without a payment token, opens (or reuses) the checkout session and
        returns the gateway's payment form. With a token, confirms the
        payment straight away.

        Returns:
            FormDescriptor to render, or the Confirmation of the payment
        """
        params = dict(params or {})
        if params.get(TOKEN_PARAM):
            return self.confirm(order, snapshot, params)

        current = self.sink.get_payment_state(order.id)
        if current != OrderPaymentState.PENDING:
            return self._stored_outcome(order, current)

        session = self._open_session(order)
        logger.info(
            "Payment form issued",
            extra={**self._log_context(order.id, "initiate"), "session_id": str(session.id)},
        )
        return self.gateway.payment_form(order, session)

    # =========================================================================
    # Confirm
    # =========================================================================

    def confirm(
        self,
        order: PaymentOrder,
        snapshot: OrderSnapshot,
        params: dict[str, Any] | None = None,
    ) -> Confirmation:
        """
        Confirm the payment with the gateway synchronously.

        Runs under the per-order lock. An order that is already AUTHORIZED
        or RECEIVED returns its stored outcome without calling the gateway
        again; an already REFUSED or CANCELED order returns that state.

        Gateway outcomes:
            success -> AUTHORIZED (authorize-only) or RECEIVED
            decline / rejected request -> REFUSED, no transaction reference
            redirect -> PENDING, Confirmation.redirect set
            timeout / pending -> PENDING, requires_reconciliation
            unavailable -> PENDING, may be retried

        After a timeout the session awaits the outcome: a resubmit replays
        the unanswered call with its original token and attempt, whatever
        token the client sends, so the gateway deduplicates it.

        Raises:
            MissingPaymentTokenError: No token and no stored intent to resume
            LockAcquisitionError: Another request holds the order lock
        """
        params = dict(params or {})
        token = params.pop(TOKEN_PARAM, None) or None
        log_context = self._log_context(order.id, "confirm")

        with order_lock(self.gateway.code, order.id):
            current = self.sink.get_payment_state(order.id)
            if current != OrderPaymentState.PENDING:
                logger.info(
                    "Confirm on settled order, returning stored outcome",
                    extra={**log_context, "state": str(current)},
                )
                return self._stored_outcome(order, current)

            intent_ref = self.sink.get_attribute(order.id, self.intent_key)
            if not token and not intent_ref:
                raise MissingPaymentTokenError(
                    "A payment token is required to confirm the payment",
                    details={"order_id": order.id, "gateway": self.gateway.code},
                )

            session = self._open_session(order)
            self._collect_token(session, token)

            request = PaymentRequest(
                order=order,
                snapshot=snapshot,
                token=session.client_token,
                customer_ref=self._resolve_customer(order),
                intent_ref=intent_ref,
                attempt=session.attempt,
                params=params,
            )

            try:
                response = self.gateway.send_payment(request)
            except GatewayTimeoutError as e:
                logger.warning(
                    "Gateway timed out, payment left pending",
                    extra={**log_context, "error_code": e.error_code, "attempt": session.attempt},
                )
                session.awaiting_outcome = True
                session.save()
                return Confirmation(
                    success=False,
                    new_state=OrderPaymentState.PENDING,
                    requires_reconciliation=True,
                    message=e.message,
                )
            except GatewayUnavailableError as e:
                logger.warning(
                    "Gateway unavailable, payment left pending",
                    extra={**log_context, "error_code": e.error_code},
                )
                return Confirmation(
                    success=False,
                    new_state=OrderPaymentState.PENDING,
                    message=e.message,
                )
            except (GatewayDeclineError, GatewayRequestError) as e:
                logger.info(
                    "Payment refused by gateway",
                    extra={**log_context, "error_code": e.error_code, "gateway_code": e.gateway_code},
                )
                return self._refuse(order, session, e.message)

            return self._apply_response(order, session, response)

    def _apply_response(
        self,
        order: PaymentOrder,
        session: CheckoutSession,
        response: GatewayResponse,
    ) -> Confirmation:
        log_context = self._log_context(order.id, "confirm")

        with transaction.atomic():
            if response.intent_reference:
                self.sink.set_attribute(order.id, self.intent_key, response.intent_reference)
                session.intent_ref = response.intent_reference
            if response.intent_reference or not response.is_pending:
                # Pending without a reference leaves the earlier call unresolved
                session.awaiting_outcome = False

            if response.is_successful:
                new_state = (
                    OrderPaymentState.AUTHORIZED
                    if self.gateway.authorize_only
                    else OrderPaymentState.RECEIVED
                )
                self._store_transaction_ref(order.id, response.transaction_reference)
                if response.customer_reference and order.user_id:
                    stored = self.customers.get(order.user_id, self.gateway.code)
                    if stored != response.customer_reference:
                        self.customers.store(order.user_id, self.gateway.code, response.customer_reference)

                self._transition(session, "confirm", response.transaction_reference)
                self.sink.set_payment_state(order.id, new_state)
                self._finish_session(session, new_state)

                logger.info(
                    "Payment confirmed",
                    extra={
                        **log_context,
                        "state": str(new_state),
                        "transaction_ref": response.transaction_reference,
                    },
                )
                return Confirmation(
                    success=True,
                    new_state=new_state,
                    transaction_reference=response.transaction_reference,
                    message=response.message,
                )

            if response.is_redirect:
                session.save()
                logger.info("Payment requires redirect", extra=log_context)
                return Confirmation(
                    success=False,
                    new_state=OrderPaymentState.PENDING,
                    redirect=FormDescriptor(
                        url=response.redirect_url or self.gateway.config.get("payment_url") or "",
                        method="GET",
                        client_config=dict(response.redirect_data),
                    ),
                    message=response.message,
                )

            if response.is_pending:
                session.save()
                logger.info("Payment outcome pending at gateway", extra=log_context)
                return Confirmation(
                    success=False,
                    new_state=OrderPaymentState.PENDING,
                    requires_reconciliation=True,
                    message=response.message,
                )

        logger.info("Payment refused by gateway", extra=log_context)
        return self._refuse(order, session, response.message)

    def _refuse(self, order: PaymentOrder, session: CheckoutSession, message: str | None) -> Confirmation:
        with transaction.atomic():
            self._transition(session, "refuse")
            self.sink.set_payment_state(order.id, OrderPaymentState.REFUSED)
            self._finish_session(session, OrderPaymentState.REFUSED)
        return Confirmation(
            success=False,
            new_state=OrderPaymentState.REFUSED,
            message=message,
        )

    def _stored_outcome(self, order: PaymentOrder, state: str) -> Confirmation:
        if state in (OrderPaymentState.AUTHORIZED, OrderPaymentState.RECEIVED):
            return Confirmation(
                success=True,
                new_state=state,
                transaction_reference=self.sink.get_attribute(order.id, self.transaction_key),
            )
        return Confirmation(success=False, new_state=state)

    def _resolve_customer(self, order: PaymentOrder) -> str | None:
        try:
            return self.customers.resolve(self.gateway, order)
        except GatewayError as e:
            # The payment can proceed without a stored profile
            logger.warning(
                "Gateway customer could not be created",
                extra={**self._log_context(order.id, "create_customer"), "error_code": e.error_code},
            )
            return None

    def _store_transaction_ref(self, order_id: str, transaction_ref: str | None) -> None:
        if not transaction_ref:
            return
        if self.sink.get_attribute(order_id, self.transaction_key) != transaction_ref:
            self.sink.set_attribute(order_id, self.transaction_key, transaction_ref)

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    def _open_session(self, order: PaymentOrder) -> CheckoutSession:
        """Return the open session of the order, creating one if needed."""
        ttl = timedelta(minutes=getattr(settings, "CHECKOUT_SESSION_TTL_MINUTES", 30))
        attempt = 1

        session = CheckoutSession.objects.filter(order_id=order.id, gateway=self.gateway.code).first()
        if session is not None:
            if session.state in OPEN_SESSION_STATES and (session.awaiting_outcome or not session.is_expired):
                return session
            # Expired or finished: start over with a new idempotency attempt
            attempt = session.attempt + 1
            session.delete()

        session = CheckoutSession.objects.create(
            order_id=order.id,
            gateway=self.gateway.code,
            user_id=order.user_id,
            attempt=attempt,
            expires_at=timezone.now() + ttl,
        )
        logger.debug(
            "Checkout session opened",
            extra={**self._log_context(order.id, "open_session"), "attempt": attempt},
        )
        return session

    def _collect_token(self, session: CheckoutSession, token: str | None) -> None:
        if session.awaiting_outcome:
            # The unanswered call is replayed as sent: same token, same attempt
            if token and token != session.client_token:
                logger.info(
                    "Previous attempt unanswered, ignoring new payment token",
                    extra={**self._log_context(session.order_id, "confirm"), "attempt": session.attempt},
                )
            return
        if token is None and session.state != CheckoutSessionState.FORM_PENDING:
            return
        if token and session.client_token and token != session.client_token:
            # New card details: the previous idempotency key must not be reused
            session.attempt += 1
        self._transition(session, "collect_token", token or session.client_token)
        session.save()

    def _transition(self, session: CheckoutSession, name: str, *args: Any) -> None:
        try:
            getattr(session, name)(*args)
        except TransitionNotAllowed as e:
            raise InvalidStateTransitionError(
                f"Cannot {name.replace('_', ' ')} checkout session in '{session.state}' state",
                details={
                    "current_state": session.state,
                    "transition": name,
                    "order_id": session.order_id,
                },
            ) from e

    def _finish_session(self, session: CheckoutSession, state: str) -> None:
        if is_terminal(state):
            session.delete()
        else:
            session.save()

    # =========================================================================
    # Reconcile
    # =========================================================================

    def reconcile(self, notification: InboundNotification) -> str | None:
        """
        Apply an asynchronous gateway notification.

        Never raises for unrecognized or stale input: gateways retry
        undelivered notifications, so these are logged and dropped.

        Returns:
            The affected order ID, or None if the notification carried no
            usable order reference

        Raises:
            LockAcquisitionError: Another request holds the order lock
        """
        try:
            update = self.gateway.parse_notification(notification)
        except UnrecognizedNotificationError as e:
            logger.warning(
                "Unrecognized gateway notification dropped",
                extra={"operation": "reconcile", "gateway": self.gateway.code, "error": e.message},
            )
            return None

        log_context = {
            **self._log_context(update.order_id, "reconcile"),
            "event_key": update.event_key,
            "target_state": str(update.state),
            "sequence": update.sequence,
        }

        with order_lock(self.gateway.code, update.order_id):
            with transaction.atomic():
                record, created = GatewayNotification.objects.get_or_create(
                    gateway=self.gateway.code,
                    event_key=update.event_key,
                    defaults={
                        "order_id": update.order_id,
                        "target_state": update.state,
                        "sequence": update.sequence,
                        "transaction_ref": update.transaction_reference,
                        "payload": update.payload,
                    },
                )
                if not created and record.is_handled:
                    logger.info("Duplicate notification ignored", extra=log_context)
                    return update.order_id

                try:
                    applied = self._apply_update(update)
                except StaleNotificationError as e:
                    logger.info("Stale notification dropped", extra={**log_context, **e.details})
                    record.mark_ignored(e.message)
                    record.save()
                    return update.order_id

                if applied:
                    record.mark_processed()
                    logger.info("Notification applied", extra=log_context)
                else:
                    record.mark_ignored("Order already in target state")
                record.save()

        return update.order_id

    def _apply_update(self, update: NotificationUpdate) -> bool:
        """
        Move the order forward as the notification asks.

        Returns:
            True if the payment state changed

        Raises:
            StaleNotificationError: Older sequence than the last applied
                notification, or a backward transition
        """
        order_id = update.order_id
        current = self.sink.get_payment_state(order_id)
        stored_seq = self.sink.get_attribute(order_id, self.sequence_key)
        last_sequence = int(stored_seq) if stored_seq else None

        if last_sequence is not None and update.sequence < last_sequence:
            raise StaleNotificationError(
                "Notification is older than the last applied one",
                details={
                    "current_state": str(current),
                    "target_state": str(update.state),
                    "last_sequence": last_sequence,
                },
            )

        if update.state == current:
            self._store_transaction_ref(order_id, update.transaction_reference)
            return False

        if not can_transition(current, update.state):
            raise StaleNotificationError(
                f"Cannot move payment from '{current}' to '{update.state}'",
                details={"current_state": str(current), "target_state": str(update.state)},
            )

        self._store_transaction_ref(order_id, update.transaction_reference)
        self.sink.set_payment_state(order_id, update.state)
        self.sink.set_attribute(order_id, self.sequence_key, str(max(update.sequence, last_sequence or 0)))

        session = CheckoutSession.objects.filter(order_id=order_id, gateway=self.gateway.code).first()
        if session is not None:
            if update.state == OrderPaymentState.REFUSED and session.state == CheckoutSessionState.CONFIRMED:
                session.refuse()
            elif update.state == OrderPaymentState.AUTHORIZED and session.state == CheckoutSessionState.TOKEN_COLLECTED:
                session.confirm(update.transaction_reference)
            session.awaiting_outcome = False
            self._finish_session(session, update.state)

        return True

    def acknowledge(self, order_ref: str | None) -> NotificationAck:
        """Return the literal acknowledgement for the notification response."""
        return self.gateway.acknowledge(order_ref is not None)
