import typing as t
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Count, Q

from accounts.models import MembershipTier
from common.models import TimeStampedModel


class Event(TimeStampedModel):
    """An occasion with a fixed capacity of tickets that members can claim.

    ``claimed_count`` is a cached aggregate of the event's claims. It is only
    ever changed through ``capacity_service`` and can be rebuilt from the
    claims at any time.
    """

    SERVICE_MANAGED_FIELDS = ("claimed_count",)

    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    event_date = models.DateTimeField(db_index=True)
    capacity = models.PositiveIntegerField()
    claimed_count = models.PositiveIntegerField(default=0, editable=False)

    class Meta:
        ordering = ["event_date", "name"]
        constraints = [
            models.CheckConstraint(condition=Q(claimed_count__gte=0), name="event_claimed_count_non_negative"),
            models.CheckConstraint(
                condition=Q(claimed_count__lte=models.F("capacity")),
                name="event_claimed_count_within_capacity",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def remaining_capacity(self) -> int:
        return max(self.capacity - self.claimed_count, 0)

    def clean(self) -> None:
        """Capacity cannot drop below what is already claimed."""
        super().clean()
        if self.capacity is not None and self.claimed_count > self.capacity:
            raise ValidationError({"capacity": "Capacity cannot be lower than the number of claimed tickets."})


class TicketTypeQuerySet(models.QuerySet["TicketType"]):
    def with_availability(self) -> t.Self:
        """Annotate each ticket type with its number of unclaimed tickets."""
        return self.annotate(
            available_count=Count("tickets", filter=Q(tickets__is_claimed=False)),
        )


class TicketType(TimeStampedModel):
    """A category of tickets for an event, restricted to some membership tiers."""

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_types")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(Decimal("0"))]
    )
    quantity = models.PositiveIntegerField(
        default=0, help_text="Number of tickets announced for this type. Informational only."
    )
    tier_criteria = models.JSONField(
        default=list, help_text="Membership tiers allowed to claim this type, e.g. ['standard', 'plus']."
    )

    objects = TicketTypeQuerySet.as_manager()

    class Meta:
        ordering = ["event", "name"]
        constraints = [
            models.UniqueConstraint(fields=["event", "name"], name="unique_ticket_type_name_per_event"),
        ]

    def __str__(self) -> str:
        return f"{self.event} - {self.name}"

    def clean(self) -> None:
        """Validate tier_criteria against the closed tier registry."""
        super().clean()
        if not isinstance(self.tier_criteria, list) or not self.tier_criteria:
            raise ValidationError({"tier_criteria": "At least one membership tier is required."})
        unknown = [tier for tier in self.tier_criteria if tier not in MembershipTier.values]
        if unknown:
            raise ValidationError({"tier_criteria": f"Unknown membership tiers: {', '.join(map(str, unknown))}."})
        # keep order, drop duplicates
        self.tier_criteria = list(dict.fromkeys(self.tier_criteria))

    @property
    def tiers(self) -> frozenset[MembershipTier]:
        return frozenset(MembershipTier(tier) for tier in self.tier_criteria)

    def allows(self, tier: MembershipTier | None) -> bool:
        """Return True if a member with this tier may claim this type."""
        return tier is not None and tier in self.tiers
