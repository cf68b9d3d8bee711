"""
Settlement app configuration.

This app reconciles payment processor webhooks against marketplace state:
- Webhook verification and idempotent event tracking
- Payment ledger records
- Creator earnings balances
- Contract, opportunity and application status propagation
"""

from django.apps import AppConfig


class SettlementConfig(AppConfig):
    """Configuration for the settlement application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "settlement"
    verbose_name = "Settlement"
