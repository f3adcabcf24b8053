from uuid import UUID

from django.conf import settings
from django.db.models import QuerySet
from ninja import File, Form
from ninja.files import UploadedFile
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.permissions import IsAdminUser

from common.authentication import ContextJWTAuth
from common.schema import ErrorResponse, SignedUrlSchema
from common.throttling import DocumentUploadThrottle, UserDefaultThrottle, WriteThrottle
from events import models, schema
from events.service import capacity_service, claim_service, document_service, inventory_service
from events.service.document_service import DecompositionResult, IngestResult

from .base import EventAdminBaseController


@api_controller(
    "/event-admin/{event_id}",
    auth=ContextJWTAuth(),
    permissions=[IsAdminUser],
    tags=["Event Admin"],
    throttle=WriteThrottle(),
)
class EventAdminTicketsController(EventAdminBaseController):
    """Ticket inventory management: uploads, manual tickets, claims and reconciliation."""

    # ---- Decomposition ----

    @route.post(
        "/ticket-uploads",
        url_name="upload_ticket_document",
        response={201: schema.IngestResponseSchema, 400: ErrorResponse, 502: ErrorResponse},
        throttle=DocumentUploadThrottle(),
    )
    def upload_ticket_document(
        self, event_id: UUID, ticket_type_id: Form[UUID], file: File[UploadedFile]
    ) -> tuple[int, IngestResult]:
        """Upload a PDF and get one preview per page.

        No tickets are created until a page selection is committed.
        """
        event = self.get_one(event_id)
        ticket_type = self.get_ticket_type(event, ticket_type_id)
        result = document_service.ingest_document(
            event=event,
            ticket_type=ticket_type,
            content=file.read(),
            filename=file.name or "tickets.pdf",
            uploaded_by=self.user(),
        )
        return 201, result

    @route.post(
        "/ticket-uploads/{upload_id}/commit",
        url_name="commit_ticket_pages",
        response={200: schema.DecompositionResultSchema, 400: ErrorResponse, 502: ErrorResponse},
    )
    def commit_ticket_pages(
        self, event_id: UUID, upload_id: UUID, payload: schema.CommitPagesSchema
    ) -> DecompositionResult:
        """Turn the selected pages of an upload into tickets.

        Pages that fail are listed with their error; the other pages still
        become tickets. Committing the same page again is a no-op.
        """
        event = self.get_one(event_id)
        upload = self.get_object_or_exception(models.TicketUpload, pk=upload_id, event=event)
        return document_service.commit_selected_pages(upload, payload.page_numbers)

    # ---- Inventory ----

    @route.post(
        "/tickets",
        url_name="add_ticket",
        response={201: schema.TicketSchema, 400: ErrorResponse, 502: ErrorResponse},
        throttle=DocumentUploadThrottle(),
    )
    def add_ticket(
        self, event_id: UUID, ticket_type_id: Form[UUID], file: File[UploadedFile]
    ) -> tuple[int, models.Ticket]:
        """Add a single ticket from a one-page PDF."""
        event = self.get_one(event_id)
        ticket_type = self.get_ticket_type(event, ticket_type_id)
        ticket = inventory_service.add_ticket(
            event=event, ticket_type=ticket_type, content=file.read(), filename=file.name or ""
        )
        return 201, ticket

    @route.get(
        "/tickets",
        url_name="list_tickets",
        response=PaginatedResponseSchema[schema.TicketSchema],
        throttle=UserDefaultThrottle(),
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_tickets(
        self, event_id: UUID, ticket_type_id: UUID | None = None, is_claimed: bool | None = None
    ) -> QuerySet[models.Ticket]:
        """List the event's tickets, oldest first."""
        event = self.get_one(event_id)
        qs = models.Ticket.objects.filter(event=event).select_related("claimed_by")
        if ticket_type_id is not None:
            qs = qs.filter(ticket_type_id=ticket_type_id)
        if is_claimed is not None:
            qs = qs.filter(is_claimed=is_claimed)
        return qs

    @route.delete(
        "/tickets/{ticket_id}",
        url_name="delete_ticket",
        response={204: None, 404: ErrorResponse},
    )
    def delete_ticket(self, event_id: UUID, ticket_id: UUID) -> tuple[int, None]:
        """Delete a ticket. A claim on it is released first."""
        ticket = self.get_ticket(self.get_one(event_id), ticket_id)
        inventory_service.delete_ticket(ticket.pk)
        return 204, None

    @route.get(
        "/tickets/{ticket_id}/document",
        url_name="get_ticket_document",
        response={200: SignedUrlSchema, 404: ErrorResponse},
        throttle=UserDefaultThrottle(),
    )
    def get_ticket_document(self, event_id: UUID, ticket_id: UUID) -> SignedUrlSchema:
        """Get a short-lived link to a ticket's document."""
        ticket = self.get_ticket(self.get_one(event_id), ticket_id)
        ttl = settings.TICKET_SIGNED_URL_TTL
        return SignedUrlSchema(url=inventory_service.get_document_url(ticket, ttl), expires_in=ttl)

    # ---- Claims ----

    @route.get(
        "/claims",
        url_name="list_claims",
        response=PaginatedResponseSchema[schema.AdminClaimSchema],
        throttle=UserDefaultThrottle(),
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_claims(self, event_id: UUID) -> QuerySet[models.TicketClaim]:
        """List everyone who claimed a ticket for the event."""
        event = self.get_one(event_id)
        return models.TicketClaim.objects.filter(event=event).select_related("user")

    @route.post(
        "/tickets/{ticket_id}/assign",
        url_name="assign_ticket",
        response={201: schema.AdminClaimSchema, 400: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
    )
    def assign_ticket(
        self, event_id: UUID, ticket_id: UUID, payload: schema.AssignTicketSchema
    ) -> tuple[int, models.TicketClaim]:
        """Assign a specific ticket to the member with the given email."""
        ticket = self.get_ticket(self.get_one(event_id), ticket_id)
        return 201, claim_service.admin_assign(ticket.pk, payload.email)

    @route.post(
        "/tickets/{ticket_id}/unclaim",
        url_name="unclaim_ticket",
        response={204: None, 404: ErrorResponse},
    )
    def unclaim_ticket(self, event_id: UUID, ticket_id: UUID) -> tuple[int, None]:
        """Release whatever claim holds the ticket."""
        ticket = self.get_ticket(self.get_one(event_id), ticket_id)
        claim_service.admin_unclaim(ticket.pk)
        return 204, None

    # ---- Consistency ----

    @route.post(
        "/reconcile",
        url_name="reconcile_event",
        response=schema.ReconcileResponseSchema,
    )
    def reconcile(self, event_id: UUID) -> schema.ReconcileResponseSchema:
        """Recompute the claimed count from the claims and report inconsistent tickets."""
        event = self.get_one(event_id)
        result = capacity_service.reconcile(event.pk)
        issues = capacity_service.audit_inventory(event.pk)
        return schema.ReconcileResponseSchema(
            event_id=result.event_id,
            previous=result.previous,
            actual=result.actual,
            stored=result.stored,
            drift=result.drift,
            issues=[schema.InventoryIssueSchema(ticket_id=i.ticket_id, problem=i.problem) for i in issues],
        )
