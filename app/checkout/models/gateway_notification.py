"""
GatewayNotification model for asynchronous gateway notifications.

Stores every recognized notification (Stripe webhook event, Payone
TransactionStatus call) for idempotent reconciliation and audit trails.
The unique (gateway, event_key) constraint ensures duplicate deliveries
are detected and applied only once.

Usage:
    from checkout.models import GatewayNotification
    from checkout.state_machines import NotificationStatus

    record, created = GatewayNotification.objects.get_or_create(
        gateway="payone",
        event_key="payone:123456:4",
        defaults={"order_id": "1001", "target_state": "received", "sequence": 4},
    )

    if not created and record.status != NotificationStatus.RECEIVED:
        # Duplicate delivery - already handled
        return
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from checkout.state_machines import NotificationStatus, OrderPaymentState


class GatewayNotification(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks gateway notifications for idempotent reconciliation.

    Processing Flow:
        1. Notification arrives, gateway verifies and parses it
        2. Insert/get GatewayNotification with (gateway, event_key)
        3. If exists and not RECEIVED -> duplicate, nothing to do
        4. Compare sequence and state with the order
        5. Set status to PROCESSED (applied) or IGNORED (stale / no-op)

    Fields:
        gateway: Gateway code
        event_key: Gateway-unique identifier of the delivery
        order_id: Platform order identifier the notification refers to
        target_state: OrderPaymentState the notification asks for
        sequence: Gateway ordering key (event timestamp, sequence number)
        transaction_ref: Gateway transaction reference carried by the notification
        payload: Raw notification data
        status: Processing status
        processed_at: When the notification was handled
        error_message: Why the notification was ignored
    """

    # ==========================================================================
    # Identification
    # ==========================================================================

    gateway = models.CharField(
        max_length=32,
        help_text="Gateway code that sent the notification",
    )

    event_key = models.CharField(
        max_length=255,
        help_text="Gateway-unique delivery identifier (unique per gateway)",
    )

    order_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Platform order identifier",
    )

    # ==========================================================================
    # Content
    # ==========================================================================

    target_state = models.CharField(
        max_length=20,
        choices=OrderPaymentState.choices,
        help_text="Payment state requested by the notification",
    )

    sequence = models.BigIntegerField(
        default=0,
        help_text="Gateway ordering key of the notification",
    )

    transaction_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Gateway transaction reference in the notification",
    )

    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Raw notification data",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=NotificationStatus.choices,
        default=NotificationStatus.RECEIVED,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the notification was handled",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Reason the notification was ignored",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Gateway Notification"
        verbose_name_plural = "Gateway Notifications"
        indexes = [
            models.Index(fields=["gateway", "order_id"], name="gateway_notif_order_idx"),
            models.Index(fields=["status", "created_at"], name="gateway_notif_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["gateway", "event_key"],
                name="gateway_notification_unique_event",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with gateway and event key."""
        return f"GatewayNotification({self.gateway}, {self.event_key})"

    @property
    def is_handled(self) -> bool:
        """Check if the notification was already processed or ignored."""
        return self.status != NotificationStatus.RECEIVED

    def mark_processed(self) -> None:
        """
        Mark notification as applied.

        Note: Does not save - caller must save after calling.
        """
        self.status = NotificationStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_ignored(self, reason: str) -> None:
        """
        Mark notification as ignored (stale or no state change).

        Note: Does not save - caller must save after calling.
        """
        self.status = NotificationStatus.IGNORED
        self.processed_at = timezone.now()
        self.error_message = reason
