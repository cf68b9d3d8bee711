import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Opportunity",
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
                ("title", models.CharField(help_text="Opportunity title", max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("filled", "Filled")],
                        db_index=True,
                        default="open",
                        help_text="open until a payment fills it",
                        max_length=20,
                    ),
                ),
                (
                    "filled_at",
                    models.DateTimeField(
                        blank=True, help_text="When the opportunity was filled", null=True
                    ),
                ),
                (
                    "posted_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Client who posted the opportunity",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="posted_opportunities",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "selected_creator",
                    models.ForeignKey(
                        blank=True,
                        help_text="Creator selected when the opportunity was filled",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="won_opportunities",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Opportunity",
                "verbose_name_plural": "Opportunities",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Application",
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
                    "status",
                    models.CharField(
                        choices=[("applied", "Applied"), ("hired", "Hired")],
                        db_index=True,
                        default="applied",
                        help_text="applied until the creator is hired",
                        max_length=20,
                    ),
                ),
                (
                    "hired_at",
                    models.DateTimeField(
                        blank=True, help_text="When the creator was hired", null=True
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        help_text="Applying creator",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="applications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "opportunity",
                    models.ForeignKey(
                        help_text="Opportunity applied to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="applications",
                        to="marketplace.opportunity",
                    ),
                ),
            ],
            options={
                "verbose_name": "Application",
                "verbose_name_plural": "Applications",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Contract",
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
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("draft", "Draft"),
                            ("active", "Active"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="draft",
                        help_text="Current state of the contract (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "total_amount",
                    models.PositiveBigIntegerField(
                        help_text="Amount charged to the client in minor units"
                    ),
                ),
                (
                    "creator_payout_amount",
                    models.PositiveBigIntegerField(help_text="Creator share in minor units"),
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
                    "external_payment_ref",
                    models.CharField(
                        blank=True,
                        help_text="Processor payment id (pi_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "activated_by_event_id",
                    models.CharField(
                        blank=True,
                        help_text="Webhook event id that activated this contract",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "start_date",
                    models.DateTimeField(
                        blank=True, help_text="When the contract became active", null=True
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True, help_text="When the contract was cancelled", null=True
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        blank=True,
                        help_text="Client paying for the contract",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="client_contracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        help_text="Creator being paid",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="creator_contracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "opportunity",
                    models.ForeignKey(
                        help_text="Opportunity this contract hires for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contracts",
                        to="marketplace.opportunity",
                    ),
                ),
            ],
            options={
                "verbose_name": "Contract",
                "verbose_name_plural": "Contracts",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="application",
            constraint=models.UniqueConstraint(
                fields=("opportunity", "creator"),
                name="application_unique_opportunity_creator",
            ),
        ),
        migrations.AddIndex(
            model_name="contract",
            index=models.Index(
                fields=["creator", "status"], name="contract_creator_status_idx"
            ),
        ),
        migrations.AddConstraint(
            model_name="contract",
            constraint=models.CheckConstraint(
                condition=models.Q(("total_amount__gt", 0)),
                name="contract_total_amount_positive",
            ),
        ),
    ]
