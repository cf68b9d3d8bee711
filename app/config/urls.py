"""
URL configuration for the settlement service.

URL Structure:
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /api/v1/settlement/            - Settlement endpoints
        webhooks/stripe/           - Processor webhook endpoint (POST)
        reconciliation/uncredited-payments/ - Staff reconciliation listing (GET)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Settlement
    path("settlement/", include("settlement.urls")),
]

urlpatterns = [
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
admin.site.site_title = "Settlement Admin"
admin.site.index_title = "Marketplace settlement"
