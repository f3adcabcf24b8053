"""Admin management of the ticket inventory outside of decomposition."""

import uuid
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction

from events import tasks
from events.exceptions import MultiPageDocumentError, TicketNotFoundError, TicketValidationError
from events.models import Event, Ticket, TicketClaim, TicketType
from events.storage import ticket_storage

from . import claim_service
from .document_service import validate_document

logger = structlog.get_logger(__name__)


def manual_ticket_path(event_id: UUID, ticket_id: UUID) -> str:
    return f"protected/event-{event_id}/tickets/{ticket_id.hex[:12]}_manual_ticket.pdf"


def add_ticket(*, event: Event, ticket_type: TicketType, content: bytes, filename: str = "") -> Ticket:
    """Add one ticket from a single-page PDF supplied by an admin.

    Raises:
        TicketValidationError: If the ticket type belongs to another event.
        MultiPageDocumentError: If the document has more than one page.
        UnsupportedDocumentError: If the file is not a usable PDF.
        StorageError: If the document cannot be stored.
    """
    if ticket_type.event_id != event.pk:
        raise TicketValidationError("This ticket type does not belong to the event.")
    if validate_document(content) != 1:
        raise MultiPageDocumentError()

    ticket_id = uuid.uuid4()
    path = ticket_storage.upload(manual_ticket_path(event.pk, ticket_id), content)
    try:
        ticket = Ticket.objects.create(id=ticket_id, event=event, ticket_type=ticket_type, document_path=path)
    except Exception:
        tasks.delete_blob_task.delay(path)
        raise
    logger.info(
        "ticket_added",
        event_id=str(event.pk),
        ticket_id=str(ticket.pk),
        ticket_type_id=str(ticket_type.pk),
        filename=filename,
    )
    return ticket


@transaction.atomic
def delete_ticket(ticket_id: UUID) -> None:
    """Delete a ticket, releasing its claim first if it has one.

    The row deletion is authoritative. The document blob is removed after
    the transaction commits; a failure there is logged for manual cleanup
    and never undoes the deletion.

    Raises:
        TicketNotFoundError: If the ticket does not exist.
    """
    ticket = Ticket.objects.select_for_update().filter(pk=ticket_id).first()
    if ticket is None:
        raise TicketNotFoundError()

    claim = TicketClaim.objects.select_for_update().filter(ticket=ticket).first()
    if claim is not None:
        claim_service.release_claim(claim)
        logger.info("claimed_ticket_deleted", ticket_id=str(ticket_id), claim_user_id=str(claim.user_id))

    document_path = ticket.document_path
    ticket.delete()
    transaction.on_commit(lambda: tasks.delete_blob_task.delay(document_path))
    logger.info("ticket_deleted", event_id=str(ticket.event_id), ticket_id=str(ticket_id))


def get_document_url(ticket: Ticket, ttl_seconds: int | None = None) -> str:
    """Return a time-limited read URL for a ticket's document."""
    return ticket_storage.get_signed_read_url(ticket.document_path, ttl_seconds or settings.TICKET_SIGNED_URL_TTL)
