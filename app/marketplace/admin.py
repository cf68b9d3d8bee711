"""
Marketplace admin configuration.

Contracts, opportunities and applications are created upstream. Status
fields are written by the settlement pipeline and shown read-only.
"""

from django.contrib import admin

from marketplace.models import Application, Contract, Opportunity


class ApplicationInline(admin.TabularInline):
    model = Application
    extra = 0
    fields = ["creator", "status", "hired_at"]
    readonly_fields = ["status", "hired_at"]


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    """
    Admin configuration for Opportunity.
    """

    list_display = ["id", "title", "status", "selected_creator", "filled_at", "created_at"]
    list_filter = ["status"]
    search_fields = ["id", "title"]
    readonly_fields = ["id", "status", "selected_creator", "filled_at", "created_at", "updated_at"]
    ordering = ["-created_at"]
    inlines = [ApplicationInline]


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ["id", "opportunity", "creator", "status", "hired_at"]
    list_filter = ["status"]
    search_fields = ["id", "opportunity__title"]
    readonly_fields = ["id", "status", "hired_at", "created_at", "updated_at"]


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    """
    Admin configuration for Contract.

    Provides visibility into contract state and the event that activated it.
    """

    list_display = [
        "id",
        "opportunity",
        "creator",
        "status",
        "total_amount",
        "creator_payout_amount",
        "external_payment_ref",
        "created_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["id", "external_payment_ref", "activated_by_event_id"]
    readonly_fields = [
        "id",
        "status",
        "activated_by_event_id",
        "start_date",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "opportunity", "creator", "client", "status"),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "total_amount",
                    "creator_payout_amount",
                    "commission_amount",
                    "currency",
                ),
            },
        ),
        (
            "Settlement",
            {
                "fields": (
                    "external_payment_ref",
                    "activated_by_event_id",
                    "start_date",
                    "cancelled_at",
                ),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )
