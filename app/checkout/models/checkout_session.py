"""
CheckoutSession model tracking the client-side tokenization handshake.

A session is opened when the payment form is first rendered for an order
and a gateway, carries the client token and the gateway's intent reference
between the two HTTP round-trips, and is deleted once the order reaches a
terminal payment state or the session times out.

State Machine:
    FORM_PENDING → TOKEN_COLLECTED → CONFIRMED
    FORM_PENDING → TOKEN_COLLECTED → REFUSED
    FORM_PENDING / TOKEN_COLLECTED → EXPIRED
    CONFIRMED → REFUSED (reconciled refusal of an authorized payment)

Usage:
    from checkout.models import CheckoutSession

    session = CheckoutSession.objects.create(
        order_id="1001",
        gateway="stripe",
        expires_at=timezone.now() + timedelta(minutes=30),
    )
    session.collect_token("tok_visa")
    session.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from checkout.state_machines import CheckoutSessionState


class CheckoutSession(UUIDPrimaryKeyMixin, BaseModel):
    """
    Per-order, per-gateway transient checkout record.

    Fields:
        order_id: Platform order identifier
        gateway: Gateway code (e.g., 'stripe', 'payone')
        user_id: Platform user identifier, if the order has one
        state: Handshake state (managed by FSM)
        intent_ref: Gateway intent reference of the in-flight payment
        client_token: Token returned by the client-side script
        transaction_ref: Gateway transaction reference once confirmed
        attempt: Attempt number used in gateway idempotency keys
        awaiting_outcome: Set when a gateway call timed out; the next
            confirm replays that call with the same token and attempt
        expires_at: When the session times out if not completed

    Note:
        Only one session may exist per (order_id, gateway). Sessions
        awaiting an outcome never expire; a notification settles them.
    """

    # ==========================================================================
    # Identification
    # ==========================================================================

    order_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Platform order identifier",
    )

    gateway = models.CharField(
        max_length=32,
        help_text="Gateway code handling this checkout",
    )

    user_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Platform user identifier (for customer references)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=CheckoutSessionState.FORM_PENDING,
        choices=CheckoutSessionState.choices,
        db_index=True,
        help_text="Current handshake state (managed by FSM)",
    )

    # ==========================================================================
    # Handshake Data
    # ==========================================================================

    intent_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway payment intent reference",
    )

    client_token = models.CharField(
        max_length=512,
        null=True,
        blank=True,
        help_text="Payment token collected by the client-side script",
    )

    transaction_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway transaction reference once confirmed",
    )

    attempt = models.PositiveIntegerField(
        default=1,
        help_text="Attempt number used in gateway idempotency keys",
    )

    awaiting_outcome = models.BooleanField(
        default=False,
        help_text="A gateway call went unanswered; resubmits replay it",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    expires_at = models.DateTimeField(
        db_index=True,
        help_text="When this session times out",
    )

    token_collected_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the client token was received",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the session was confirmed or refused",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Checkout Session"
        verbose_name_plural = "Checkout Sessions"
        indexes = [
            models.Index(fields=["state", "expires_at"], name="checkout_session_expiry_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order_id", "gateway"],
                name="checkout_session_one_per_order_gateway",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with order, gateway and state."""
        return f"CheckoutSession({self.order_id}, {self.gateway}, {self.state})"

    @property
    def is_expired(self) -> bool:
        """Check if the session has passed its expiry time."""
        return self.expires_at <= timezone.now()

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=[
            CheckoutSessionState.FORM_PENDING,
            CheckoutSessionState.TOKEN_COLLECTED,
        ],
        target=CheckoutSessionState.TOKEN_COLLECTED,
    )
    def collect_token(self, token: str | None):
        """
        Record the token returned by the client-side script.

        Transition: FORM_PENDING/TOKEN_COLLECTED -> TOKEN_COLLECTED

        A resubmit after a timeout may carry a fresh token; it replaces
        the previous one.
        """
        self.client_token = token
        self.token_collected_at = timezone.now()

    @transition(
        field=state,
        source=CheckoutSessionState.TOKEN_COLLECTED,
        target=CheckoutSessionState.CONFIRMED,
    )
    def confirm(self, transaction_ref: str | None = None):
        """
        Mark the gateway confirmation as successful.

        Transition: TOKEN_COLLECTED -> CONFIRMED
        """
        if transaction_ref:
            self.transaction_ref = transaction_ref
        self.completed_at = timezone.now()

    @transition(
        field=state,
        source=[
            CheckoutSessionState.TOKEN_COLLECTED,
            CheckoutSessionState.CONFIRMED,
        ],
        target=CheckoutSessionState.REFUSED,
    )
    def refuse(self):
        """
        Mark the payment as refused.

        Transition: TOKEN_COLLECTED/CONFIRMED -> REFUSED

        CONFIRMED -> REFUSED happens when an authorized payment is
        later refused through reconciliation.
        """
        self.completed_at = timezone.now()

    @transition(
        field=state,
        source=[
            CheckoutSessionState.FORM_PENDING,
            CheckoutSessionState.TOKEN_COLLECTED,
        ],
        target=CheckoutSessionState.EXPIRED,
    )
    def expire(self):
        """
        Time the session out.

        Transition: FORM_PENDING/TOKEN_COLLECTED -> EXPIRED
        """
        pass
