import typing as t

from django.conf import settings
from django.db import models
from django.db.models import Q

from common.models import TimeStampedModel

from .event import Event, TicketType


class TicketUpload(TimeStampedModel):
    """A source document an admin uploaded for decomposition into tickets.

    Pages are only turned into tickets when the admin commits a selection.
    """

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_uploads")
    ticket_type = models.ForeignKey(TicketType, on_delete=models.CASCADE, related_name="uploads")
    source_path = models.CharField(max_length=500)
    original_filename = models.CharField(max_length=255)
    file_hash = models.CharField(max_length=64, db_index=True)
    page_count = models.PositiveIntegerField()
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="ticket_uploads"
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.original_filename} ({self.page_count} pages)"


class TicketQuerySet(models.QuerySet["Ticket"]):
    def available(self) -> t.Self:
        """Unclaimed tickets, oldest first."""
        return self.filter(is_claimed=False).order_by("created_at", "id")

    def full(self) -> t.Self:
        return self.select_related("event", "ticket_type", "claimed_by")


class Ticket(TimeStampedModel):
    """One claimable ticket document.

    ``is_claimed`` and ``claimed_by`` mirror the ticket's claim. They are
    only changed together with the claim, inside the claim service.
    """

    SERVICE_MANAGED_FIELDS = ("is_claimed", "claimed_by", "claimed_at")

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="tickets")
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets"
    )
    upload = models.ForeignKey(
        TicketUpload, on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets", editable=False
    )
    page_number = models.PositiveIntegerField(null=True, blank=True, help_text="1-based page in the source upload.")
    document_path = models.CharField(max_length=500)
    is_claimed = models.BooleanField(default=False, db_index=True)
    claimed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="claimed_tickets",
    )
    claimed_at = models.DateTimeField(null=True, blank=True)

    objects = TicketQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["upload", "page_number"],
                condition=Q(upload__isnull=False, page_number__isnull=False),
                name="unique_ticket_per_upload_page",
            ),
        ]
        indexes = [
            models.Index(fields=["ticket_type", "is_claimed", "created_at"], name="ticket_availability_idx"),
        ]

    def __str__(self) -> str:
        suffix = f" p{self.page_number}" if self.page_number else ""
        return f"Ticket {self.pk}{suffix}"


class TicketClaim(TimeStampedModel):
    """The assignment of one ticket to one member for one event."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="ticket_claims")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="claims")
    ticket = models.OneToOneField(Ticket, on_delete=models.RESTRICT, related_name="claim")
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.SET_NULL, null=True, blank=True, related_name="claims"
    )
    claimed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-claimed_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "event"], name="unique_claim_per_user_event"),
        ]

    def __str__(self) -> str:
        return f"{self.user} -> {self.ticket_id}"

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Validate fields but leave uniqueness to the database.

        Concurrent claims then fail with IntegrityError, which the claim
        service translates.
        """
        self.full_clean(validate_unique=False, validate_constraints=False)
        models.Model.save(self, *args, **kwargs)
