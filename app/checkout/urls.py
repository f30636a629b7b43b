"""
URL configuration for the checkout app.

Routes:
    - POST {gateway}/orders/{order_id}/process/ - Payment form / confirmation
    - POST {gateway}/notify/ - Gateway notification endpoint

All routes are prefixed with /api/v1/checkout/ when included in the main URLconf.
"""

from django.urls import path

from checkout.views import ProcessPaymentView, gateway_notification

app_name = "checkout"

urlpatterns = [
    path(
        "<slug:gateway>/orders/<str:order_id>/process/",
        ProcessPaymentView.as_view(),
        name="process",
    ),
    # Notification endpoints
    path("<slug:gateway>/notify/", gateway_notification, name="notify"),
]
