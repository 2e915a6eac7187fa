"""
URL configuration for the settlement and escrow service.

URL Structure:
    /                                  - ReDoc API documentation
    /admin/                            - Django admin interface
    /health/                           - Health check endpoint (for load balancers, Docker)
    /schema/                           - OpenAPI schema (YAML)
    /api/v1/payments/                  - Payment endpoints
        intent/                        - Create a payment intent (POST)
        {id}/status/                   - Payment status with processor reconciliation (GET)
        webhooks/processor/            - Processor webhook endpoint (POST)
    /api/v1/escrow/                    - Escrow endpoints
        (root)                         - List escrow holds (GET)
        {id}/complete-work/            - Mark work completed (POST)
        {id}/release/                  - Release held funds (POST)
        {id}/transfer/                 - Retry the vendor transfer (POST, operators)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("payments/", include("payments.urls")),
    path("escrow/", include("payments.escrow_urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Settlement Admin"
admin.site.site_title = "Settlement Admin Portal"
admin.site.index_title = "Payments, escrow holds and transfers"
