import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


def timestamp_fields():
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
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier for this record",
                primary_key=True,
                serialize=False,
            ),
        ),
    ]


TRANSFER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("paid", "Paid"),
    ("reversed", "Reversed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("marketplace", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=timestamp_fields()
            + [
                ("inquiry_id", models.UUIDField(blank=True, db_index=True, null=True)),
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Payment amount in smallest currency unit (e.g., cents)",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="usd",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[("stripe_card", "Stripe Card")],
                        default="stripe_card",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                            ("partially_refunded", "Partially Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "processor_reference",
                    models.CharField(
                        help_text="Processor payment intent ID (pi_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Client-supplied idempotency key for intent creation",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "processor_metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Last processor object received for this payment",
                    ),
                ),
                ("failure_reason", models.TextField(blank=True, null=True)),
                (
                    "refunded_amount",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Cumulative refunded amount reported by the processor",
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the first refund (full or partial) was applied",
                        null=True,
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="marketplace.invoice",
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who initiated the payment",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="marketplace.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["invoice", "status"], name="payment_invoice_status_idx"),
                    models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="EscrowHold",
            fields=timestamp_fields()
            + [
                ("total_amount", models.PositiveBigIntegerField()),
                ("platform_fee", models.PositiveBigIntegerField()),
                ("vendor_amount", models.PositiveBigIntegerField()),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("held", "Held"), ("released", "Released")],
                        db_index=True,
                        default="held",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("held_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("work_completed", models.BooleanField(db_index=True, default=False)),
                ("work_completed_at", models.DateTimeField(blank=True, null=True)),
                ("work_verification_notes", models.TextField(blank=True, default="")),
                (
                    "release_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("automatic", "Automatic"),
                            ("manual", "Manual"),
                            ("scheduled", "Scheduled"),
                        ],
                        max_length=20,
                        null=True,
                    ),
                ),
                ("release_reason", models.TextField(blank=True, default="")),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "customer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="escrow_holds",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_holds",
                        to="marketplace.invoice",
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_hold",
                        to="payments.payment",
                    ),
                ),
                (
                    "released_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_holds",
                        to="marketplace.vendor",
                    ),
                ),
                (
                    "work_verified_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Escrow Hold",
                "verbose_name_plural": "Escrow Holds",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "work_completed", "work_completed_at"],
                        name="escrow_hold_release_scan_idx",
                    ),
                    models.Index(fields=["vendor", "status"], name="escrow_hold_vendor_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("total_amount", models.F("platform_fee") + models.F("vendor_amount"))
                        ),
                        name="escrow_hold_split_sums_to_total",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("vendor_amount__gt", 0)),
                        name="escrow_hold_vendor_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PlatformRevenueEntry",
            fields=timestamp_fields()
            + [
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Platform fee in smallest currency unit",
                    ),
                ),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "fee_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Fee rate in effect when the payment settled",
                        max_digits=6,
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="platform_revenue",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Platform Revenue Entry",
                "verbose_name_plural": "Platform Revenue Entries",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="VendorRevenueEntry",
            fields=timestamp_fields()
            + [
                (
                    "amount",
                    models.PositiveBigIntegerField(
                        help_text="Vendor share in smallest currency unit",
                    ),
                ),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "transfer_status",
                    models.CharField(
                        choices=TRANSFER_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Processor transfer ID (tr_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("transferred_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="vendor_revenue",
                        to="payments.payment",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="revenue_entries",
                        to="marketplace.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Vendor Revenue Entry",
                "verbose_name_plural": "Vendor Revenue Entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["vendor", "transfer_status"],
                        name="vendor_rev_vendor_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transfer",
            fields=timestamp_fields()
            + [
                ("amount", models.PositiveBigIntegerField()),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("destination_account", models.CharField(max_length=255)),
                (
                    "processor_transfer_id",
                    models.CharField(
                        help_text="Processor transfer ID (tr_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=TRANSFER_STATUS_CHOICES,
                        db_index=True,
                        default="paid",
                        max_length=20,
                    ),
                ),
                ("reversed_at", models.DateTimeField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "escrow_hold",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfer",
                        to="payments.escrowhold",
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transfers",
                        to="marketplace.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Transfer",
                "verbose_name_plural": "Transfers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=timestamp_fields()
            + [
                (
                    "processor_event_id",
                    models.CharField(
                        help_text="Processor event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Processor event type (e.g., 'payment_intent.succeeded')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload (JSON)")),
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
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
                ],
            },
        ),
    ]
