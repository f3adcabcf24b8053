import typing as t
from uuid import UUID

from django.conf import settings
from django.db.models import QuerySet
from ninja_extra import (
    api_controller,
    route,
)

from common.authentication import ContextJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, SignedUrlSchema
from common.throttling import ClaimThrottle, WriteThrottle
from events import models, schema
from events.exceptions import ClaimNotFoundError
from events.service import claim_service, inventory_service

CLAIM_ERROR_RESPONSES: dict[int, type] = {
    400: ErrorResponse,
    403: ErrorResponse,
    404: ErrorResponse,
    409: ErrorResponse,
}


@api_controller("/events", auth=ContextJWTAuth(), tags=["Events"])
class EventController(UserAwareController):
    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(models.Event, pk=event_id))

    @route.get("/{event_id}", url_name="get_event", response=schema.EventSchema)
    def get_event(self, event_id: UUID) -> models.Event:
        """Get an event with its capacity and the number of claimed tickets."""
        return self.get_one(event_id)

    @route.get("/{event_id}/ticket-types", url_name="list_ticket_types", response=list[schema.TicketTypeSchema])
    def list_ticket_types(self, event_id: UUID) -> QuerySet[models.TicketType]:
        """List the event's ticket types with the number of unclaimed tickets of each."""
        event = self.get_one(event_id)
        return models.TicketType.objects.with_availability().filter(event=event)

    @route.post(
        "/{event_id}/ticket-types/{ticket_type_id}/claim",
        url_name="claim_ticket",
        response={201: schema.ClaimSchema, **CLAIM_ERROR_RESPONSES},
        throttle=ClaimThrottle(),
    )
    def claim_ticket(self, event_id: UUID, ticket_type_id: UUID) -> tuple[int, models.TicketClaim]:
        """Claim one ticket of a ticket type.

        Fails with 403 if the membership tier is not eligible, with 409 if the
        caller already has a ticket for the event or nothing is left.
        """
        event = self.get_one(event_id)
        ticket_type = t.cast(
            models.TicketType, self.get_object_or_exception(models.TicketType, pk=ticket_type_id, event=event)
        )
        claim = claim_service.claim_ticket(event=event, ticket_type=ticket_type, user=self.user())
        return 201, claim


@api_controller("/claims", auth=ContextJWTAuth(), tags=["Claims"])
class ClaimController(UserAwareController):
    def get_queryset(self) -> QuerySet[models.TicketClaim]:
        return models.TicketClaim.objects.filter(user=self.user()).select_related("event", "ticket_type")

    @route.get("/", url_name="list_my_claims", response=list[schema.ClaimSchema])
    def list_claims(self) -> QuerySet[models.TicketClaim]:
        """List the caller's claims, newest first."""
        return self.get_queryset()

    @route.delete(
        "/{claim_id}",
        url_name="unclaim",
        response={204: None, 404: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def unclaim(self, claim_id: UUID) -> tuple[int, None]:
        """Give a claimed ticket back."""
        claim_service.unclaim(claim_id, user=self.user())
        return 204, None

    @route.get(
        "/{claim_id}/document",
        url_name="get_claim_document",
        response={200: SignedUrlSchema, 404: ErrorResponse, 502: ErrorResponse},
    )
    def get_document(self, claim_id: UUID) -> SignedUrlSchema:
        """Get a short-lived link to the claimed ticket's document."""
        claim = self.get_queryset().select_related("ticket").filter(pk=claim_id).first()
        if claim is None:
            raise ClaimNotFoundError()
        ttl = settings.TICKET_SIGNED_URL_TTL
        return SignedUrlSchema(url=inventory_service.get_document_url(claim.ticket, ttl), expires_in=ttl)
