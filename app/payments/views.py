"""
DRF views for payments app.

Endpoints:
    GET  /api/v1/payments/plans/                   - Active pricing plans
    POST /api/v1/payments/coupons/validate/        - Price a plan with a coupon
    POST /api/v1/payments/checkout/                - Create order and checkout session
    GET  /api/v1/payments/orders/                  - Current user's orders
    GET  /api/v1/payments/orders/{id}/             - One order
    GET  /api/v1/payments/orders/{id}/invoice/     - Public invoice URL
    GET  /api/v1/payments/balance/                 - Credit and audio-star balance

Webhook endpoints live in payments.webhooks.views.

Domain errors raised here (PlanNotFoundError, CouponInvalidError, ...) are
rendered by core.views.api_exception_handler.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.adapters import BillingoClient
from payments.exceptions import CouponInvalidError, InvoicingError, PlanNotFoundError
from payments.ledger import ledger
from payments.models import PricingPlan
from payments.serializers import (
    BalanceSerializer,
    CheckoutRequestSerializer,
    CheckoutResponseSerializer,
    CouponValidateSerializer,
    CouponValidationResultSerializer,
    InvoiceUrlSerializer,
    OrderSerializer,
    PricingPlanSerializer,
)
from payments.services import (
    CheckoutService,
    CouponService,
    get_order_by_id,
    get_user_orders,
)

logger = logging.getLogger(__name__)


class PricingPlanListView(APIView):
    """
    List active pricing plans, cheapest first.

    GET /api/v1/payments/plans/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_pricing_plans",
        summary="List pricing plans",
        responses={200: PricingPlanSerializer(many=True)},
        tags=["Payments"],
    )
    def get(self, request):
        plans = PricingPlan.objects.active().order_by("price_cents")
        return Response(PricingPlanSerializer(plans, many=True).data)


class CouponValidateView(APIView):
    """
    Price a plan with a coupon without creating an order.

    POST /api/v1/payments/coupons/validate/

    Request body:
        {"code": "WINTER10", "plan_code": "pack_1000"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="validate_coupon",
        summary="Validate coupon",
        request=CouponValidateSerializer,
        responses={
            200: CouponValidationResultSerializer,
            400: OpenApiResponse(description="Coupon rejected"),
            404: OpenApiResponse(description="Plan not found"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        plan = PricingPlan.objects.active().filter(code=data["plan_code"]).first()
        if plan is None:
            raise PlanNotFoundError(
                "Pricing plan not found or inactive",
                details={"plan_code": data["plan_code"]},
            )

        subtotal = plan.effective_price()
        result = CouponService.validate(data["code"], subtotal, currency=plan.currency)
        if not result:
            raise CouponInvalidError(result.error, error_code=result.error_code)

        coupon = result.data
        if not CouponService.within_user_limit(coupon, request.user):
            raise CouponInvalidError("Coupon usage limit reached", error_code="COUPON_USER_LIMIT")

        discount = coupon.discount_for(subtotal)
        body = CouponValidationResultSerializer(
            {
                "valid": True,
                "code": coupon.code,
                "subtotal_cents": subtotal,
                "discount_cents": discount,
                "total_cents": max(0, subtotal - discount),
                "currency": plan.currency,
            }
        )
        return Response(body.data)


class CheckoutView(APIView):
    """
    Create an order and a provider checkout session.

    POST /api/v1/payments/checkout/

    Request body:
        {"plan_code": "pack_1000", "coupon_code": "WINTER10"}

    Returns:
        {"order_id": "...", "checkout_url": "https://...", "provider": "stripe"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_checkout",
        summary="Create checkout session",
        request=CheckoutRequestSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Coupon rejected or amount out of range"),
            404: OpenApiResponse(description="Plan not found"),
            502: OpenApiResponse(description="Payment provider error"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = CheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = CheckoutService().create_checkout(
            request.user,
            plan_code=serializer.validated_data["plan_code"],
            coupon_code=serializer.validated_data.get("coupon_code") or None,
        )
        body = CheckoutResponseSerializer(
            {
                "order_id": result.order.pk,
                "checkout_url": result.checkout_url,
                "provider": result.order.provider,
            }
        )
        return Response(body.data, status=status.HTTP_201_CREATED)


class OrderListView(APIView):
    """GET /api/v1/payments/orders/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_orders",
        summary="List my orders",
        responses={200: OrderSerializer(many=True)},
        tags=["Payments"],
    )
    def get(self, request):
        return Response(OrderSerializer(get_user_orders(request.user), many=True).data)


class OrderDetailView(APIView):
    """GET /api/v1/payments/orders/{id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_order",
        summary="Get order",
        responses={200: OrderSerializer, 404: OpenApiResponse(description="Order not found")},
        tags=["Payments"],
    )
    def get(self, request, order_id):
        return Response(OrderSerializer(get_order_by_id(order_id, user=request.user)).data)


class OrderInvoiceView(APIView):
    """
    Public download URL of an order's invoice.

    GET /api/v1/payments/orders/{id}/invoice/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_order_invoice",
        summary="Get invoice URL",
        responses={
            200: InvoiceUrlSerializer,
            404: OpenApiResponse(description="Order or invoice not found"),
            502: OpenApiResponse(description="Invoicing service error"),
        },
        tags=["Payments"],
    )
    def get(self, request, order_id):
        order = get_order_by_id(order_id, user=request.user)
        if order.invoice_id is None:
            return Response(
                {"error": "Invoice not available", "error_code": "INVOICE_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        try:
            url = BillingoClient().get_public_url(order.invoice_id)
        except InvoicingError:
            logger.error(
                "invoice.public_url_failed",
                extra={"order_id": str(order.pk), "invoice_id": order.invoice_id},
                exc_info=True,
            )
            raise

        return Response(InvoiceUrlSerializer({"invoice_id": order.invoice_id, "url": url}).data)


class BalanceView(APIView):
    """GET /api/v1/payments/balance/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_balance",
        summary="Get balances",
        responses={200: BalanceSerializer},
        tags=["Payments"],
    )
    def get(self, request):
        return Response(BalanceSerializer(ledger.balances(request.user).to_dict()).data)
