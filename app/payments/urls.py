"""
URL configuration for the payments app.

Routes:
    - GET  /plans/                       - Active pricing plans
    - POST /coupons/validate/            - Coupon check
    - POST /checkout/                    - Checkout session
    - GET  /orders/                      - Order history
    - GET  /orders/<id>/                 - Order detail
    - GET  /orders/<id>/invoice/         - Invoice URL
    - GET  /balance/                     - Balances
    - POST /webhooks/stripe/             - Stripe webhook endpoint
    - GET|POST /webhooks/barion/         - Barion callback endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.
"""

from django.urls import path

from payments import views
from payments.webhooks.views import barion_webhook, stripe_webhook

app_name = "payments"

urlpatterns = [
    path("plans/", views.PricingPlanListView.as_view(), name="plan-list"),
    path("coupons/validate/", views.CouponValidateView.as_view(), name="coupon-validate"),
    path("checkout/", views.CheckoutView.as_view(), name="checkout"),
    path("orders/", views.OrderListView.as_view(), name="order-list"),
    path("orders/<uuid:order_id>/", views.OrderDetailView.as_view(), name="order-detail"),
    path(
        "orders/<uuid:order_id>/invoice/",
        views.OrderInvoiceView.as_view(),
        name="order-invoice",
    ),
    path("balance/", views.BalanceView.as_view(), name="balance"),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    path("webhooks/barion/", barion_webhook, name="barion_webhook"),
]
