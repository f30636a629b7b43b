"""
Checkout app configuration.

This app provides the payment adapter contract including:
- Order snapshots built from baskets
- Stripe and Payone gateways
- Checkout sessions and gateway notifications
"""

from django.apps import AppConfig


class CheckoutConfig(AppConfig):
    """Configuration for the checkout application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "checkout"
    verbose_name = "Checkout"
