# src/events/admin/ticket.py
"""Admin classes for ticket uploads, tickets and claims.

Claimed state is read-only here. Deleting tickets or claims goes through the
services so that the event's claimed count follows.
"""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from unfold.admin import ModelAdmin

from events import models
from events.admin.base import EventLinkMixin, UserLinkMixin
from events.service import claim_service, inventory_service


@admin.register(models.TicketUpload)
class TicketUploadAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["original_filename", "event_link", "ticket_type", "page_count", "created_at"]
    list_filter = ["event"]
    search_fields = ["original_filename", "file_hash"]
    readonly_fields = ["source_path", "file_hash", "page_count", "uploaded_by", "created_at"]
    list_select_related = ["event", "ticket_type"]


@admin.register(models.Ticket)
class TicketAdmin(ModelAdmin, EventLinkMixin, UserLinkMixin):  # type: ignore[misc]
    list_display = ["id", "event_link", "ticket_type", "page_number", "is_claimed", "user_link", "claimed_at"]
    list_filter = ["is_claimed", "event", "ticket_type"]
    search_fields = ["id", "claimed_by__email", "document_path"]
    readonly_fields = ["upload", "page_number", "is_claimed", "claimed_by", "claimed_at", "document_path"]
    list_select_related = ["event", "ticket_type", "claimed_by"]

    def has_add_permission(self, request: HttpRequest) -> bool:
        # Tickets come from uploaded documents.
        return False

    def delete_model(self, request: HttpRequest, obj: models.Ticket) -> None:
        inventory_service.delete_ticket(obj.pk)

    def delete_queryset(self, request: HttpRequest, queryset: QuerySet[models.Ticket]) -> None:
        for ticket_id in queryset.values_list("pk", flat=True):
            inventory_service.delete_ticket(ticket_id)


@admin.register(models.TicketClaim)
class TicketClaimAdmin(ModelAdmin, EventLinkMixin, UserLinkMixin):  # type: ignore[misc]
    list_display = ["user_link", "event_link", "ticket_type", "ticket", "claimed_at"]
    list_filter = ["event", "ticket_type"]
    search_fields = ["user__email", "user__username"]
    list_select_related = ["user", "event", "ticket_type"]

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj: models.TicketClaim | None = None) -> bool:
        return False

    def delete_model(self, request: HttpRequest, obj: models.TicketClaim) -> None:
        claim_service.unclaim(obj.pk)

    def delete_queryset(self, request: HttpRequest, queryset: QuerySet[models.TicketClaim]) -> None:
        for claim_id in queryset.values_list("pk", flat=True):
            claim_service.unclaim(claim_id)
