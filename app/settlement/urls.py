"""
URL configuration for the settlement app.

Routes:
    - POST /webhooks/stripe/ - Processor webhook endpoint
    - GET /reconciliation/uncredited-payments/ - Staff reconciliation listing

All routes are prefixed with /api/v1/settlement/ when included in the main URLconf.
"""

from django.urls import path

from settlement.views import UncreditedPaymentListView
from settlement.webhooks.views import payment_webhook

app_name = "settlement"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/stripe/", payment_webhook, name="payment_webhook"),
    # Reconciliation
    path(
        "reconciliation/uncredited-payments/",
        UncreditedPaymentListView.as_view(),
        name="uncredited_payments",
    ),
]
