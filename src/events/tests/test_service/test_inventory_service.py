import typing as t
import uuid
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from django.db import IntegrityError

from accounts.models import GigpassUser
from common.signing import verify_signature
from events.exceptions import MultiPageDocumentError, TicketNotFoundError, UnsupportedDocumentError
from events.models import Event, Ticket, TicketClaim, TicketType
from events.service import claim_service, inventory_service
from events.storage import ticket_storage

pytestmark = pytest.mark.django_db


class TestAddTicket:
    def test_adds_single_page_ticket(self, event: Event, standard_type: TicketType, single_page_pdf: bytes) -> None:
        ticket = inventory_service.add_ticket(
            event=event, ticket_type=standard_type, content=single_page_pdf, filename="walk-in.pdf"
        )

        assert ticket.upload is None
        assert ticket.page_number is None
        assert not ticket.is_claimed
        assert ticket.document_path.endswith("_manual_ticket.pdf")
        assert ticket_storage.read(ticket.document_path) == single_page_pdf

    def test_rejects_multi_page_document(self, event: Event, standard_type: TicketType, three_page_pdf: bytes) -> None:
        with pytest.raises(MultiPageDocumentError):
            inventory_service.add_ticket(event=event, ticket_type=standard_type, content=three_page_pdf)

        assert not Ticket.objects.exists()

    def test_rejects_non_pdf(self, event: Event, standard_type: TicketType) -> None:
        with pytest.raises(UnsupportedDocumentError):
            inventory_service.add_ticket(event=event, ticket_type=standard_type, content=b"GIF89a not a pdf")

    def test_failed_row_removes_stored_document(
        self, event: Event, standard_type: TicketType, single_page_pdf: bytes
    ) -> None:
        with (
            patch.object(Ticket.objects, "create", side_effect=IntegrityError("boom")),
            pytest.raises(IntegrityError),
        ):
            inventory_service.add_ticket(event=event, ticket_type=standard_type, content=single_page_pdf)

        assert not any(ticket_storage.storage.listdir(f"protected/event-{event.pk}/tickets")[1])


class TestDeleteTicket:
    def test_deletes_unclaimed_ticket_and_document(
        self,
        standard_tickets: list[Ticket],
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        ticket = standard_tickets[0]

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            inventory_service.delete_ticket(ticket.pk)

        assert len(callbacks) == 1
        assert not Ticket.objects.filter(pk=ticket.pk).exists()
        assert not ticket_storage.exists(ticket.document_path)

    def test_deleting_claimed_ticket_releases_claim(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        member_user: GigpassUser,
        django_capture_on_commit_callbacks: t.Any,
    ) -> None:
        claim = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        with django_capture_on_commit_callbacks(execute=True):
            inventory_service.delete_ticket(claim.ticket_id)

        event.refresh_from_db()
        assert event.claimed_count == 0
        assert not TicketClaim.objects.exists()
        assert not Ticket.objects.filter(pk=claim.ticket_id).exists()

    def test_deleting_claimed_ticket_with_drifted_counter(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        member_user: GigpassUser,
        other_member: GigpassUser,
    ) -> None:
        claim = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)
        claim_service.claim_ticket(event=event, ticket_type=standard_type, user=other_member)
        Event.objects.filter(pk=event.pk).update(claimed_count=0)

        inventory_service.delete_ticket(claim.ticket_id)

        assert not Ticket.objects.filter(pk=claim.ticket_id).exists()
        event.refresh_from_db()
        # Rebuilt from the one remaining claim.
        assert event.claimed_count == 1

    def test_document_is_only_removed_after_commit(
        self, standard_tickets: list[Ticket], django_capture_on_commit_callbacks: t.Any
    ) -> None:
        ticket = standard_tickets[0]

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            inventory_service.delete_ticket(ticket.pk)

        assert len(callbacks) == 1
        assert ticket_storage.exists(ticket.document_path)

    def test_document_delete_failure_keeps_row_deleted(
        self, standard_tickets: list[Ticket], django_capture_on_commit_callbacks: t.Any
    ) -> None:
        ticket = standard_tickets[0]

        with (
            patch.object(ticket_storage.storage.__class__, "delete", side_effect=OSError("read-only")),
            django_capture_on_commit_callbacks(execute=True),
        ):
            inventory_service.delete_ticket(ticket.pk)

        assert not Ticket.objects.filter(pk=ticket.pk).exists()

    def test_unknown_ticket(self) -> None:
        with pytest.raises(TicketNotFoundError):
            inventory_service.delete_ticket(uuid.uuid4())


def test_get_document_url_is_signed_and_expiring(standard_tickets: list[Ticket]) -> None:
    ticket = standard_tickets[0]

    url = inventory_service.get_document_url(ticket, ttl_seconds=60)

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert parsed.path.endswith(ticket.document_path)
    assert verify_signature(parsed.path, params["exp"][0], params["sig"][0])
