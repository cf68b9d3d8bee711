"""
Marketplace models: Opportunity, Application and Contract.

A client posts an Opportunity, creators submit Applications, and the
client pays for a Contract with one creator. Payment is confirmed
asynchronously by the processor; the settlement pipeline then activates
the contract, fills the opportunity and hires the creator.

Usage:
    from marketplace.models import Contract

    contract = Contract.objects.by_external_ref("pi_123")
    if contract and can_proceed(contract.activate):
        contract.activate(event_id="evt_1")
        contract.save()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from marketplace.states import ApplicationStatus, ContractStatus, OpportunityStatus


class Opportunity(UUIDPrimaryKeyMixin, BaseModel):
    """
    A paid gig posted by a client.

    Fields:
        title: Short description shown on the board
        posted_by: Client who posted it
        status: open until one payment fills it
        selected_creator: Creator whose contract payment filled it
        filled_at: When it was filled

    Note:
        status is only ever written through a conditioned
        UPDATE ... WHERE status = 'open' (see StatusPropagator), so
        concurrent fills resolve to exactly one winner.
    """

    title = models.CharField(
        max_length=255,
        help_text="Opportunity title",
    )

    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="posted_opportunities",
        help_text="Client who posted the opportunity",
    )

    status = models.CharField(
        max_length=20,
        choices=OpportunityStatus.choices,
        default=OpportunityStatus.OPEN,
        db_index=True,
        help_text="open until a payment fills it",
    )

    selected_creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="won_opportunities",
        help_text="Creator selected when the opportunity was filled",
    )

    filled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the opportunity was filled",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Opportunity"
        verbose_name_plural = "Opportunities"

    def __str__(self) -> str:
        return f"Opportunity({self.id}, {self.status})"

    @property
    def is_open(self) -> bool:
        return self.status == OpportunityStatus.OPEN


class Application(UUIDPrimaryKeyMixin, BaseModel):
    """
    A creator's application to an Opportunity.

    One application per (opportunity, creator). Moves applied → hired only
    when its opportunity is filled for the same creator.
    """

    opportunity = models.ForeignKey(
        Opportunity,
        on_delete=models.CASCADE,
        related_name="applications",
        help_text="Opportunity applied to",
    )

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="applications",
        help_text="Applying creator",
    )

    status = models.CharField(
        max_length=20,
        choices=ApplicationStatus.choices,
        default=ApplicationStatus.APPLIED,
        db_index=True,
        help_text="applied until the creator is hired",
    )

    hired_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the creator was hired",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Application"
        verbose_name_plural = "Applications"
        constraints = [
            models.UniqueConstraint(
                fields=["opportunity", "creator"],
                name="application_unique_opportunity_creator",
            ),
        ]

    def __str__(self) -> str:
        return f"Application({self.opportunity_id}, {self.creator_id}, {self.status})"


class ContractQuerySet(models.QuerySet):
    """QuerySet with the lookups the settlement pipeline relies on."""

    def by_external_ref(self, external_payment_ref: str) -> Contract | None:
        """
        Return the contract paid through the given processor reference.

        Args:
            external_payment_ref: Processor payment id (pi_xxx)

        Returns:
            The Contract, or None if no contract carries that reference yet
        """
        if not external_payment_ref:
            return None
        return self.filter(external_payment_ref=external_payment_ref).first()


class Contract(UUIDPrimaryKeyMixin, BaseModel):
    """
    An agreement between a client and a creator for one Opportunity.

    State Flow:
        DRAFT -> ACTIVE       (payment succeeded)
        DRAFT -> CANCELLED    (payment failed)
        ACTIVE -> CANCELLED   (payment refunded)

    Fields:
        opportunity: Opportunity this contract hires for
        creator: Creator being paid
        client: Client paying
        status: FSM state
        total_amount: Amount charged to the client (minor units)
        creator_payout_amount: Share credited to the creator (minor units)
        commission_amount: Platform commission (minor units)
        currency: ISO 4217 code
        external_payment_ref: Processor payment id, unique
        activated_by_event_id: Event id whose payment activated the contract
        start_date: When the contract became active
        cancelled_at: When the contract was cancelled
    """

    opportunity = models.ForeignKey(
        Opportunity,
        on_delete=models.PROTECT,
        related_name="contracts",
        help_text="Opportunity this contract hires for",
    )

    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="creator_contracts",
        help_text="Creator being paid",
    )

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="client_contracts",
        help_text="Client paying for the contract",
    )

    status = FSMField(
        default=ContractStatus.DRAFT,
        choices=ContractStatus.choices,
        db_index=True,
        help_text="Current state of the contract (managed by FSM)",
    )

    total_amount = models.PositiveBigIntegerField(
        help_text="Amount charged to the client in minor units",
    )

    creator_payout_amount = models.PositiveBigIntegerField(
        help_text="Creator share in minor units",
    )

    commission_amount = models.PositiveBigIntegerField(
        default=0,
        help_text="Platform commission in minor units",
    )

    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )

    external_payment_ref = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Processor payment id (pi_xxx)",
    )

    activated_by_event_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Webhook event id that activated this contract",
    )

    start_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the contract became active",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the contract was cancelled",
    )

    objects = ContractQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Contract"
        verbose_name_plural = "Contracts"
        indexes = [
            models.Index(fields=["creator", "status"], name="contract_creator_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0),
                name="contract_total_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.total_amount / 100:.2f} {self.currency.upper()}"
        return f"Contract({self.id}, {self.status}, {amount_display})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=ContractStatus.DRAFT,
        target=ContractStatus.ACTIVE,
    )
    def activate(self, event_id: str | None = None):
        """
        Transition: DRAFT -> ACTIVE

        Called when the processor confirms the client's payment.
        """
        self.start_date = timezone.now()
        self.activated_by_event_id = event_id

    @transition(
        field=status,
        source=ContractStatus.DRAFT,
        target=ContractStatus.CANCELLED,
    )
    def cancel(self, event_id: str | None = None):
        """
        Transition: DRAFT -> CANCELLED

        Called when the client's payment fails.
        """
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=ContractStatus.ACTIVE,
        target=ContractStatus.CANCELLED,
    )
    def cancel_after_refund(self, event_id: str | None = None):
        """
        Transition: ACTIVE -> CANCELLED

        Called when the payment that activated the contract is refunded.
        """
        self.cancelled_at = timezone.now()
