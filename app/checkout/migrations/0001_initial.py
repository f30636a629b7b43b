import uuid

import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CheckoutSession",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        db_index=True,
                        help_text="Platform order identifier",
                        max_length=64,
                    ),
                ),
                (
                    "gateway",
                    models.CharField(
                        help_text="Gateway code handling this checkout",
                        max_length=32,
                    ),
                ),
                (
                    "user_id",
                    models.CharField(
                        blank=True,
                        help_text="Platform user identifier (for customer references)",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("form_pending", "Form Pending"),
                            ("token_collected", "Token Collected"),
                            ("confirmed", "Confirmed"),
                            ("refused", "Refused"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="form_pending",
                        help_text="Current handshake state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "intent_ref",
                    models.CharField(
                        blank=True,
                        help_text="Gateway payment intent reference",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "client_token",
                    models.CharField(
                        blank=True,
                        help_text="Payment token collected by the client-side script",
                        max_length=512,
                        null=True,
                    ),
                ),
                (
                    "transaction_ref",
                    models.CharField(
                        blank=True,
                        help_text="Gateway transaction reference once confirmed",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "attempt",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Attempt number used in gateway idempotency keys",
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        db_index=True,
                        help_text="When this session times out",
                    ),
                ),
                (
                    "token_collected_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the client token was received",
                        null=True,
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the session was confirmed or refused",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Checkout Session",
                "verbose_name_plural": "Checkout Sessions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["state", "expires_at"],
                        name="checkout_session_expiry_idx",
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order_id", "gateway"),
                        name="checkout_session_one_per_order_gateway",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayCustomer",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "user_id",
                    models.CharField(
                        help_text="Platform user identifier",
                        max_length=64,
                    ),
                ),
                (
                    "gateway",
                    models.CharField(help_text="Gateway code", max_length=32),
                ),
                (
                    "customer_ref",
                    models.CharField(
                        help_text="Gateway customer reference (e.g., cus_xxx)",
                        max_length=255,
                    ),
                ),
            ],
            options={
                "verbose_name": "Gateway Customer",
                "verbose_name_plural": "Gateway Customers",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user_id", "gateway"),
                        name="gateway_customer_one_per_user_gateway",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayNotification",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "gateway",
                    models.CharField(
                        help_text="Gateway code that sent the notification",
                        max_length=32,
                    ),
                ),
                (
                    "event_key",
                    models.CharField(
                        help_text="Gateway-unique delivery identifier (unique per gateway)",
                        max_length=255,
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        db_index=True,
                        help_text="Platform order identifier",
                        max_length=64,
                    ),
                ),
                (
                    "target_state",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("authorized", "Authorized"),
                            ("received", "Received"),
                            ("refused", "Refused"),
                            ("canceled", "Canceled"),
                        ],
                        help_text="Payment state requested by the notification",
                        max_length=20,
                    ),
                ),
                (
                    "sequence",
                    models.BigIntegerField(
                        default=0,
                        help_text="Gateway ordering key of the notification",
                    ),
                ),
                (
                    "transaction_ref",
                    models.CharField(
                        blank=True,
                        help_text="Gateway transaction reference in the notification",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Raw notification data",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("received", "Received"),
                            ("processed", "Processed"),
                            ("ignored", "Ignored"),
                        ],
                        db_index=True,
                        default="received",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the notification was handled",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Reason the notification was ignored",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Gateway Notification",
                "verbose_name_plural": "Gateway Notifications",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["gateway", "order_id"],
                        name="gateway_notif_order_idx",
                    ),
                    models.Index(
                        fields=["status", "created_at"],
                        name="gateway_notif_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("gateway", "event_key"),
                        name="gateway_notification_unique_event",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderPaymentStatus",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        help_text="Platform order identifier",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("authorized", "Authorized"),
                            ("received", "Received"),
                            ("refused", "Refused"),
                            ("canceled", "Canceled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payment state of the order",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Payment Status",
                "verbose_name_plural": "Order Payment Statuses",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="OrderServiceAttribute",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "order_id",
                    models.CharField(
                        db_index=True,
                        help_text="Platform order identifier",
                        max_length=64,
                    ),
                ),
                (
                    "key",
                    models.CharField(
                        help_text="Attribute key, namespaced by gateway",
                        max_length=100,
                    ),
                ),
                (
                    "value",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Attribute value",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Service Attribute",
                "verbose_name_plural": "Order Service Attributes",
                "ordering": ["order_id", "key"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("order_id", "key"),
                        name="order_service_attribute_unique_key",
                    )
                ],
            },
        ),
    ]
