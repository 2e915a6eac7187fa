"""
URL configuration for the payments app.

Routes:
    - POST intent/ - Create payment intent
    - GET <payment_id>/status/ - Payment status
    - POST webhooks/processor/ - Stripe webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import CreatePaymentIntentView, PaymentStatusView
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path("intent/", CreatePaymentIntentView.as_view(), name="create_intent"),
    path("<uuid:payment_id>/status/", PaymentStatusView.as_view(), name="payment_status"),
    # Webhook endpoints
    path("webhooks/processor/", stripe_webhook, name="processor_webhook"),
]
