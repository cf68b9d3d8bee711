"""
State enums for marketplace models.

Contract States (django-fsm):
    draft → active       (first successful payment)
    draft → cancelled    (failed payment)
    active → cancelled   (refund)

Opportunity States:
    open → filled        (one-way, at most one winning payment)

Application States:
    applied → hired      (only together with its opportunity being filled
                          for the same creator)
"""

from django.db import models


class ContractStatus(models.TextChoices):
    """
    States for the Contract lifecycle.

    Terminal state: CANCELLED
    """

    DRAFT = "draft", "Draft"
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"


class OpportunityStatus(models.TextChoices):
    """States for a marketplace Opportunity."""

    OPEN = "open", "Open"
    FILLED = "filled", "Filled"


class ApplicationStatus(models.TextChoices):
    """States for a creator's Application to an Opportunity."""

    APPLIED = "applied", "Applied"
    HIRED = "hired", "Hired"


__all__ = [
    "ApplicationStatus",
    "ContractStatus",
    "OpportunityStatus",
]
