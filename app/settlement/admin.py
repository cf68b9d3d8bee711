"""
Settlement admin configuration.

Rows here are written by the settlement pipeline. The admin is for
inspection, so settlement fields are read-only.
"""

from django.contrib import admin

from settlement.models import CreatorEarnings, PaymentRecord, WebhookEvent


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """
    Admin configuration for PaymentRecord.
    """

    list_display = [
        "id",
        "contract",
        "status",
        "amount",
        "payout_amount",
        "commission_amount",
        "earnings_credited_at",
        "created_at",
    ]
    list_filter = ["status", "payment_method", "currency"]
    search_fields = [
        "id",
        "external_event_id",
        "external_payment_ref",
        "external_charge_ref",
    ]
    readonly_fields = [
        "id",
        "contract",
        "amount",
        "payout_amount",
        "commission_amount",
        "currency",
        "status",
        "external_event_id",
        "external_payment_ref",
        "external_charge_ref",
        "payment_method",
        "earnings_credited_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "contract", "status", "payment_method"),
            },
        ),
        (
            "Amounts",
            {
                "fields": ("amount", "payout_amount", "commission_amount", "currency"),
            },
        ),
        (
            "Processor References",
            {
                "fields": (
                    "external_event_id",
                    "external_payment_ref",
                    "external_charge_ref",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("earnings_credited_at", "refunded_at", "created_at", "updated_at"),
            },
        ),
    )


@admin.register(CreatorEarnings)
class CreatorEarningsAdmin(admin.ModelAdmin):
    """
    Admin configuration for CreatorEarnings.

    Totals only change through EarningsAggregator.
    """

    list_display = ["creator", "total_earnings", "version", "updated_at"]
    search_fields = ["creator__username", "creator__email"]
    readonly_fields = ["id", "creator", "total_earnings", "version", "created_at", "updated_at"]
    ordering = ["-updated_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Shows processing status and errors for debugging deliveries.
    """

    list_display = [
        "external_event_id",
        "event_type",
        "status",
        "retry_count",
        "claimed_at",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type"]
    search_fields = ["external_event_id", "event_type"]
    readonly_fields = [
        "id",
        "external_event_id",
        "event_type",
        "payload",
        "status",
        "claimed_at",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "external_event_id", "event_type"),
            },
        ),
        (
            "Processing",
            {
                "fields": (
                    "status",
                    "claimed_at",
                    "processed_at",
                    "retry_count",
                    "error_message",
                ),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )
