import typing as t
from datetime import timedelta

import pytest
from django.utils import timezone

from accounts.models import GigpassUser, MembershipTier
from events.models import Event, Ticket, TicketType, TicketUpload
from events.service import document_service
from events.storage import ticket_storage


@pytest.fixture
def event() -> Event:
    return Event.objects.create(name="Spring Gala", event_date=timezone.now() + timedelta(days=30), capacity=10)


@pytest.fixture
def standard_type(event: Event) -> TicketType:
    """Open to standard and plus members."""
    return TicketType.objects.create(
        event=event, name="General admission", tier_criteria=[MembershipTier.STANDARD, MembershipTier.PLUS]
    )


@pytest.fixture
def premium_type(event: Event) -> TicketType:
    return TicketType.objects.create(event=event, name="Backstage", tier_criteria=[MembershipTier.PREMIUM])


@pytest.fixture
def ticket_factory(single_page_pdf: bytes) -> t.Callable[..., list[Ticket]]:
    """Create tickets with a stored one-page document."""

    def _create(ticket_type: TicketType, count: int = 1, **kwargs: t.Any) -> list[Ticket]:
        tickets = []
        for _ in range(count):
            ticket = Ticket(event=ticket_type.event, ticket_type=ticket_type, **kwargs)
            path = f"protected/event-{ticket_type.event_id}/tickets/{ticket.pk.hex}.pdf"
            ticket.document_path = ticket_storage.upload(path, single_page_pdf)
            ticket.save()
            tickets.append(ticket)
        return tickets

    return _create


@pytest.fixture
def standard_tickets(standard_type: TicketType, ticket_factory: t.Callable[..., list[Ticket]]) -> list[Ticket]:
    return ticket_factory(standard_type, count=3)


@pytest.fixture
def three_page_upload(
    event: Event, standard_type: TicketType, three_page_pdf: bytes, staff_user: GigpassUser
) -> TicketUpload:
    """An ingested three-page document; no tickets committed yet."""
    return document_service.ingest_document(
        event=event,
        ticket_type=standard_type,
        content=three_page_pdf,
        filename="gala tickets.pdf",
        uploaded_by=staff_user,
    ).upload
