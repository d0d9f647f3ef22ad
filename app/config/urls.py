"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - JWT obtain pair (simplejwt)
    /api/v1/auth/token/refresh/    - JWT refresh
    /api/v1/payments/              - Payment endpoints
        plans/                     - Active pricing plans
        coupons/validate/          - Coupon preview for a plan
        checkout/                  - Create order and provider session
        orders/                    - Current user's orders
        orders/{id}/               - Order detail
        orders/{id}/invoice/       - Invoice public URL
        balance/                   - Credit and audio star balances
        webhooks/stripe/           - Stripe webhook endpoint (POST)
        webhooks/barion/           - Barion callback endpoint (POST)
    /api/v1/stories/               - Story endpoints
        children/                  - Child profiles
        children/{id}/stories/     - List / create stories for a child
        {id}/                      - Story detail
        {id}/audio/                - Request narration
        {id}/audio/cost/           - Narration price and state
        {id}/regenerate/           - Re-render the cover of a ready story
    /api/v1/notifications/         - In-app notifications

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

api_v1_patterns = [
    # Authentication
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Notifications
    path("notifications/", include("notifications.urls")),
    # Payments
    path("payments/", include("payments.urls")),
    # Stories
    path("stories/", include("stories.urls")),
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

admin.site.site_header = "Mesemondó Admin"
admin.site.site_title = "Mesemondó"
admin.site.index_title = "Orders, ledger and stories"
