import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

UUID_PK = (
    "id",
    models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    ),
)


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


def ledger_entry_fields():
    return [
        UUID_PK,
        (
            "type",
            models.CharField(
                choices=[
                    ("reserve", "Reserve"),
                    ("refund", "Refund"),
                    ("purchase", "Purchase"),
                    ("bonus", "Bonus"),
                    ("manual", "Manual"),
                    ("spend", "Spend"),
                ],
                max_length=20,
            ),
        ),
        ("amount", models.IntegerField(help_text="Signed amount; negative values are debits")),
        ("reason", models.CharField(blank=True, default="", max_length=100)),
        ("source", models.CharField(blank=True, default="", max_length=100)),
        ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
    ]


def ledger_entry_relations(related_name):
    return [
        (
            "order",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name=related_name,
                to="payments.order",
            ),
        ),
        (
            "story",
            models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name=related_name,
                to="stories.story",
            ),
        ),
        (
            "user",
            models.ForeignKey(
                on_delete=django.db.models.deletion.PROTECT,
                related_name=related_name,
                to=settings.AUTH_USER_MODEL,
            ),
        ),
    ]


DISCOUNT_TYPES = [("percent", "Percent"), ("amount", "Amount")]
PROVIDERS = [("stripe", "Stripe"), ("barion", "Barion")]


def provider_event_fields():
    return [
        UUID_PK,
        ("event_id", models.CharField(max_length=255, unique=True)),
        ("type", models.CharField(db_index=True, max_length=100)),
        ("payload", models.JSONField()),
        ("processed_at", models.DateTimeField(blank=True, null=True)),
        ("processing_error", models.TextField(blank=True, default="")),
        ("attempts", models.PositiveSmallIntegerField(default=0)),
        ("received_at", models.DateTimeField(auto_now_add=True, db_index=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("stories", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PricingPlan",
            fields=[
                UUID_PK,
                *timestamps(),
                ("code", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("credits", models.PositiveIntegerField()),
                ("currency", models.CharField(default="HUF", max_length=3)),
                (
                    "price_cents",
                    models.PositiveIntegerField(help_text="List price in minor units of the currency"),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("promo_enabled", models.BooleanField(default=False)),
                (
                    "promo_type",
                    models.CharField(blank=True, choices=DISCOUNT_TYPES, max_length=10, null=True),
                ),
                ("promo_value", models.PositiveIntegerField(blank=True, null=True)),
                ("promo_starts_at", models.DateTimeField(blank=True, null=True)),
                ("promo_ends_at", models.DateTimeField(blank=True, null=True)),
                ("bonus_credits", models.PositiveIntegerField(default=0)),
                ("bonus_audio_stars", models.PositiveIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Pricing Plan",
                "verbose_name_plural": "Pricing Plans",
                "db_table": "pricing_plans",
                "ordering": ["price_cents"],
            },
        ),
        migrations.CreateModel(
            name="Coupon",
            fields=[
                UUID_PK,
                *timestamps(),
                ("code", models.CharField(max_length=64, unique=True)),
                ("type", models.CharField(choices=DISCOUNT_TYPES, max_length=10)),
                (
                    "value",
                    models.PositiveIntegerField(help_text="Percent (1-100) or amount in minor units"),
                ),
                (
                    "currency",
                    models.CharField(
                        blank=True,
                        help_text="Required currency for amount coupons",
                        max_length=3,
                        null=True,
                    ),
                ),
                ("max_redemptions", models.PositiveIntegerField(blank=True, null=True)),
                ("redeemed_count", models.PositiveIntegerField(default=0)),
                ("per_user_limit", models.PositiveIntegerField(blank=True, default=1, null=True)),
                ("min_order_amount_cents", models.PositiveIntegerField(blank=True, null=True)),
                ("starts_at", models.DateTimeField(blank=True, null=True)),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "db_table": "coupons",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                UUID_PK,
                *timestamps(),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("pending_payment", "Pending payment"),
                            ("paid", "Paid"),
                            ("canceled", "Canceled"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="created",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("currency", models.CharField(default="HUF", max_length=3)),
                ("subtotal_cents", models.PositiveIntegerField()),
                ("discount_cents", models.PositiveIntegerField(default=0)),
                ("total_cents", models.PositiveIntegerField()),
                ("credits_total", models.PositiveIntegerField()),
                ("coupon_code_snapshot", models.CharField(blank=True, default="", max_length=64)),
                (
                    "coupon_type_snapshot",
                    models.CharField(blank=True, choices=DISCOUNT_TYPES, default="", max_length=10),
                ),
                ("coupon_value_snapshot", models.PositiveIntegerField(blank=True, null=True)),
                ("provider", models.CharField(choices=PROVIDERS, default="stripe", max_length=10)),
                (
                    "stripe_checkout_session_id",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("stripe_payment_intent_id", models.CharField(blank=True, default="", max_length=255)),
                ("stripe_customer_id", models.CharField(blank=True, default="", max_length=255)),
                (
                    "barion_payment_id",
                    models.CharField(blank=True, db_index=True, default="", max_length=255),
                ),
                ("barion_payment_request_id", models.CharField(blank=True, default="", max_length=255)),
                ("barion_customer_id", models.CharField(blank=True, default="", max_length=255)),
                ("invoice_id", models.BigIntegerField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                (
                    "coupon",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="orders",
                        to="payments.coupon",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="orders_user_status_idx"),
                    models.Index(fields=["user", "coupon", "status"], name="orders_coupon_usage_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_cents__gt", 0)),
                        name="order_total_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                UUID_PK,
                ("plan_code_snapshot", models.CharField(max_length=64)),
                ("plan_name_snapshot", models.CharField(max_length=200)),
                ("unit_price_cents_snapshot", models.PositiveIntegerField()),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("credits_per_unit_snapshot", models.PositiveIntegerField()),
                ("line_subtotal_cents", models.PositiveIntegerField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="payments.order",
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="payments.pricingplan",
                    ),
                ),
            ],
            options={
                "db_table": "order_items",
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                UUID_PK,
                *timestamps(),
                ("provider", models.CharField(choices=PROVIDERS, default="stripe", max_length=10)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("requires_action", "Requires action"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="created",
                        max_length=20,
                    ),
                ),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(default="HUF", max_length=3)),
                (
                    "stripe_payment_intent_id",
                    models.CharField(blank=True, max_length=255, null=True, unique=True),
                ),
                ("stripe_charge_id", models.CharField(blank=True, default="", max_length=255)),
                ("barion_payment_id", models.CharField(blank=True, default="", max_length=255)),
                ("barion_transaction_id", models.CharField(blank=True, default="", max_length=255)),
                ("failure_code", models.CharField(blank=True, default="", max_length=100)),
                ("failure_message", models.TextField(blank=True, default="")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="payments.order",
                    ),
                ),
            ],
            options={
                "db_table": "payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["order", "status"], name="payments_order_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentCustomer",
            fields=[
                UUID_PK,
                *timestamps(),
                ("provider", models.CharField(choices=PROVIDERS, max_length=10)),
                ("customer_id", models.CharField(max_length=255)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payment_customers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "payment_customers",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "provider"),
                        name="unique_payment_customer_per_provider",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StripeEvent",
            fields=[
                *provider_event_fields(),
                ("api_version", models.CharField(blank=True, default="", max_length=50)),
                (
                    "created",
                    models.DateTimeField(
                        blank=True,
                        help_text="Event creation time reported by Stripe",
                        null=True,
                    ),
                ),
                ("livemode", models.BooleanField(default=False)),
            ],
            options={
                "db_table": "stripe_events",
                "ordering": ["-received_at"],
            },
        ),
        migrations.CreateModel(
            name="BarionEvent",
            fields=[
                *provider_event_fields(),
                ("payment_id", models.CharField(db_index=True, max_length=255)),
            ],
            options={
                "db_table": "barion_events",
                "ordering": ["-received_at"],
            },
        ),
        migrations.CreateModel(
            name="LedgerAccount",
            fields=[
                UUID_PK,
                (
                    "kind",
                    models.CharField(
                        choices=[("credits", "Credits"), ("audio_stars", "Audio stars")],
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="ledger_accounts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "kind"),
                        name="unique_ledger_account_per_user_kind",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreditTransaction",
            fields=[
                *ledger_entry_fields(),
                *ledger_entry_relations("credittransaction_entries"),
            ],
            options={
                "db_table": "credit_transactions",
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="credittransaction_user_idx"),
                    models.Index(
                        fields=["user", "story", "reason", "source"],
                        name="credittransaction_dedup_idx",
                    ),
                    models.Index(fields=["order", "type"], name="credittransaction_order_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="credittransaction_amount_nonzero",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AudioStarTransaction",
            fields=[
                *ledger_entry_fields(),
                *ledger_entry_relations("audiostartransaction_entries"),
            ],
            options={
                "db_table": "audio_star_transactions",
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="audiostartransaction_user_idx"),
                    models.Index(
                        fields=["user", "story", "reason", "source"],
                        name="audiostartransaction_dedup_idx",
                    ),
                    models.Index(fields=["order", "type"], name="audiostartransaction_order_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="audiostartransaction_amount_nonzero",
                    ),
                ],
            },
        ),
    ]
