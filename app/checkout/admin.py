"""
Checkout admin configuration.

Registers checkout models with the Django admin. Notifications and
order status rows are written by the payment adapter only and are
read-only here.
"""

from django.contrib import admin

from checkout.models import (
    CheckoutSession,
    GatewayCustomer,
    GatewayNotification,
    OrderPaymentStatus,
    OrderServiceAttribute,
)

__all__ = [
    "CheckoutSessionAdmin",
    "GatewayCustomerAdmin",
    "GatewayNotificationAdmin",
    "OrderPaymentStatusAdmin",
    "OrderServiceAttributeAdmin",
]


@admin.register(CheckoutSession)
class CheckoutSessionAdmin(admin.ModelAdmin):
    """
    Admin configuration for CheckoutSession.

    Provides visibility into checkouts that are still in flight.
    """

    list_display = [
        "id",
        "order_id",
        "gateway",
        "state",
        "attempt",
        "expires_at",
        "created_at",
    ]
    list_filter = ["state", "gateway"]
    search_fields = ["id", "order_id", "intent_ref", "transaction_ref"]
    readonly_fields = [
        "id",
        "state",
        "created_at",
        "updated_at",
        "token_collected_at",
        "completed_at",
    ]
    exclude = ["client_token"]
    ordering = ["-created_at"]


@admin.register(GatewayNotification)
class GatewayNotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for GatewayNotification.

    Notifications are immutable once received.
    """

    list_display = [
        "id",
        "gateway",
        "event_key",
        "order_id",
        "target_state",
        "status",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "gateway", "target_state", "created_at"]
    search_fields = ["id", "event_key", "order_id", "transaction_ref"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "gateway",
        "event_key",
        "order_id",
        "target_state",
        "sequence",
        "transaction_ref",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "gateway", "event_key", "order_id", "status"),
            },
        ),
        (
            "Update",
            {
                "fields": ("target_state", "sequence", "transaction_ref", "processed_at"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
                "classes": ("collapse",),
            },
        ),
    )


@admin.register(OrderPaymentStatus)
class OrderPaymentStatusAdmin(admin.ModelAdmin):
    list_display = ["order_id", "state", "updated_at"]
    list_filter = ["state"]
    search_fields = ["order_id"]
    readonly_fields = ["order_id", "state", "created_at", "updated_at"]


@admin.register(OrderServiceAttribute)
class OrderServiceAttributeAdmin(admin.ModelAdmin):
    list_display = ["order_id", "key", "value", "updated_at"]
    search_fields = ["order_id", "key", "value"]
    readonly_fields = ["order_id", "key", "value", "created_at", "updated_at"]


@admin.register(GatewayCustomer)
class GatewayCustomerAdmin(admin.ModelAdmin):
    list_display = ["id", "user_id", "gateway", "customer_ref", "created_at"]
    list_filter = ["gateway"]
    search_fields = ["user_id", "customer_ref"]
    readonly_fields = ["id", "created_at", "updated_at"]
