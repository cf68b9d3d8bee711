import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("marketplace", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
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
                    "external_event_id",
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
                (
                    "payload",
                    models.JSONField(
                        blank=True, default=dict, help_text="Full verified webhook payload"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="processing",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "claimed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the current processing attempt claimed the event",
                        null=True,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="webhook_status_created_idx"
                    ),
                    models.Index(
                        fields=["status", "claimed_at"], name="webhook_status_claimed_idx"
                    ),
                    models.Index(
                        fields=["status", "retry_count"], name="webhook_status_retry_idx"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
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
                    "amount",
                    models.PositiveBigIntegerField(help_text="Amount charged in minor units"),
                ),
                (
                    "payout_amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Creator share in minor units"
                    ),
                ),
                (
                    "commission_amount",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Platform commission in minor units"
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
                    "status",
                    models.CharField(
                        choices=[
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        help_text="completed, failed or refunded",
                        max_length=20,
                    ),
                ),
                (
                    "external_event_id",
                    models.CharField(
                        help_text="Webhook event id that created this record",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "external_payment_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Processor payment id (pi_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "external_charge_ref",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Processor charge id (ch_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        default="stripe",
                        help_text="Processor that handled the payment",
                        max_length=50,
                    ),
                ),
                (
                    "earnings_credited_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When payout_amount was credited to the creator's earnings",
                        null=True,
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True, help_text="When the refund was recorded", null=True
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        help_text="Contract this payment settles",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_records",
                        to="marketplace.contract",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "earnings_credited_at"],
                        name="payment_status_credited_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CreatorEarnings",
            fields=[
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
                    "total_earnings",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Total credited payouts in minor units"
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Optimistic locking version, incremented on every credit",
                    ),
                ),
                (
                    "creator",
                    models.OneToOneField(
                        help_text="Creator whose earnings this row tracks",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="earnings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Creator Earnings",
                "verbose_name_plural": "Creator Earnings",
                "ordering": ["-created_at"],
            },
        ),
    ]
