import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


def _timestamps():
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
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def _version():
    return (
        "version",
        models.PositiveIntegerField(
            default=1,
            help_text="Version for optimistic locking - incremented on each save",
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _version(),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Total amount charged to the customer",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="mxn",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "tax_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Tax included in amount",
                        max_digits=12,
                    ),
                ),
                (
                    "platform_fee",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Platform commission, set on release",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "professional_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount credited to the professional, set on release",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "refunded_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Total refunded to the customer",
                        max_digits=12,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("authorized", "Authorized"),
                            ("captured", "Captured"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "invoice_kind",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("with_invoice", "With Invoice"),
                            ("without_invoice", "Without Invoice"),
                        ],
                        help_text="Billing document requested by the customer",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "external_ref",
                    models.CharField(
                        help_text="Gateway PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                ("authorized_at", models.DateTimeField(blank=True, null=True)),
                ("captured_at", models.DateTimeField(blank=True, null=True)),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("refund_reason", models.TextField(blank=True, null=True)),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Reason reported by the gateway when the payment failed",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata for extensibility",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        help_text="Booking this payment is for",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        help_text="Order this payment is for",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payment_status_created_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(booking__isnull=False, order__isnull=True),
                            models.Q(booking__isnull=True, order__isnull=False),
                            _connector="OR",
                        ),
                        name="payment_exactly_one_source",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payment_amount_positive",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            models.Q(booking__isnull=False),
                            models.Q(status="failed", _negated=True),
                        ),
                        fields=("booking",),
                        name="payment_unique_active_booking",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(
                            models.Q(order__isnull=False),
                            models.Q(status="failed", _negated=True),
                        ),
                        fields=("order",),
                        name="payment_unique_active_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Balance",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _version(),
                (
                    "professional_id",
                    models.UUIDField(
                        help_text="Professional this balance belongs to",
                        unique=True,
                    ),
                ),
                (
                    "available",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Released funds available for payout",
                        max_digits=12,
                    ),
                ),
                (
                    "pending",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Funds reserved by in-flight payouts",
                        max_digits=12,
                    ),
                ),
                ("currency", models.CharField(default="mxn", max_length=3)),
            ],
            options={
                "verbose_name": "Balance",
                "verbose_name_plural": "Balances",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(available__gte=0),
                        name="balance_available_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(pending__gte=0),
                        name="balance_pending_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConnectedAccount",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "professional_id",
                    models.UUIDField(
                        help_text="Professional this account pays out to",
                        unique=True,
                    ),
                ),
                (
                    "external_account_id",
                    models.CharField(
                        help_text="Gateway account ID (acct_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "payouts_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the gateway has enabled payouts for this account",
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "verbose_name": "Connected Account",
                "verbose_name_plural": "Connected Accounts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                _version(),
                (
                    "professional_id",
                    models.UUIDField(
                        db_index=True,
                        help_text="Professional receiving the payout",
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Payout amount",
                        max_digits=12,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="mxn",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "external_ref",
                    models.CharField(
                        blank=True,
                        help_text="Gateway Transfer ID (tr_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["professional_id", "created_at"],
                        name="payout_professional_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payout_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DocumentSequence",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                *_timestamps(),
                (
                    "kind",
                    models.CharField(
                        choices=[("INV", "Invoice"), ("REC", "Receipt")],
                        max_length=3,
                    ),
                ),
                ("year", models.PositiveSmallIntegerField()),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
            options={
                "ordering": ["kind", "year"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("kind", "year"),
                        name="document_sequence_unique_kind_year",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                ("number", models.CharField(max_length=20, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("issued", "Issued"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="issued",
                        max_length=20,
                    ),
                ),
                ("customer_name", models.CharField(max_length=255)),
                ("customer_tax_id", models.CharField(max_length=50)),
                (
                    "customer_address",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "customer_city",
                    models.CharField(blank=True, default="", max_length=100),
                ),
                (
                    "customer_country",
                    models.CharField(blank=True, default="", max_length=2),
                ),
                (
                    "customer_postal_code",
                    models.CharField(blank=True, default="", max_length=20),
                ),
                (
                    "customer_email",
                    models.EmailField(blank=True, default="", max_length=254),
                ),
                ("items", models.JSONField(default=list)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                ("tax_rate", models.DecimalField(decimal_places=4, max_digits=5)),
                ("tax_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="mxn", max_length=3)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField()),
                (
                    "document_url",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoice",
                        to="payments.payment",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="bookings.booking",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="bookings.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Invoice",
                "verbose_name_plural": "Invoices",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(booking__isnull=False),
                        fields=("booking",),
                        name="invoice_unique_booking",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(order__isnull=False),
                        fields=("order",),
                        name="invoice_unique_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                ("number", models.CharField(max_length=20, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="mxn", max_length=3)),
                (
                    "description",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("issue_date", models.DateField()),
                (
                    "document_url",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipt",
                        to="payments.payment",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipts",
                        to="bookings.booking",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="receipts",
                        to="bookings.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Receipt",
                "verbose_name_plural": "Receipts",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(booking__isnull=False),
                        fields=("booking",),
                        name="receipt_unique_booking",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(order__isnull=False),
                        fields=("order",),
                        name="receipt_unique_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "gateway_event_id",
                    models.CharField(
                        help_text="Gateway event ID (evt_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'charge.refunded')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full event body from the gateway"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    )
                ],
            },
        ),
    ]
