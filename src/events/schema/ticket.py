"""Ticket, claim and decomposition schemas."""

from datetime import datetime
from uuid import UUID

from ninja import ModelSchema, Schema

from accounts.schema import GigpassUserSchema
from common.schema import StrippedString
from events.models import Ticket, TicketClaim, TicketUpload
from events.service.document_service import PageOutcome

from .event import EventSchema, TicketTypeSchema


class TicketSchema(ModelSchema):
    """A ticket as seen by event admins."""

    event_id: UUID
    ticket_type_id: UUID | None = None
    upload_id: UUID | None = None
    claimed_by: GigpassUserSchema | None = None

    class Meta:
        model = Ticket
        fields = ["id", "page_number", "is_claimed", "claimed_at", "created_at"]


class ClaimSchema(ModelSchema):
    """A member's own claim."""

    event: EventSchema
    ticket_id: UUID
    ticket_type: TicketTypeSchema | None = None

    class Meta:
        model = TicketClaim
        fields = ["id", "claimed_at"]


class AdminClaimSchema(ModelSchema):
    user: GigpassUserSchema
    event_id: UUID
    ticket_id: UUID
    ticket_type_id: UUID | None = None

    class Meta:
        model = TicketClaim
        fields = ["id", "claimed_at"]


class TicketUploadSchema(ModelSchema):
    event_id: UUID
    ticket_type_id: UUID

    class Meta:
        model = TicketUpload
        fields = ["id", "original_filename", "page_count", "file_hash", "created_at"]


class PagePreviewSchema(Schema):
    page_number: int
    data_url: str
    width: float
    height: float


class IngestResponseSchema(Schema):
    """The stored upload and one preview per page, for picking pages to commit."""

    upload: TicketUploadSchema
    previews: list[PagePreviewSchema]


class CommitPagesSchema(Schema):
    page_numbers: list[int]


class PageResultSchema(Schema):
    page_number: int
    outcome: PageOutcome
    ticket_id: UUID | None = None
    error: str | None = None


class DecompositionResultSchema(Schema):
    upload_id: UUID
    pages: list[PageResultSchema]
    skipped: list[int]
    created_count: int
    failed_count: int

    @staticmethod
    def resolve_created_count(obj: object) -> int:
        return len(obj.created)  # type: ignore[attr-defined]

    @staticmethod
    def resolve_failed_count(obj: object) -> int:
        return len(obj.failures)  # type: ignore[attr-defined]


class AssignTicketSchema(Schema):
    email: StrippedString


class InventoryIssueSchema(Schema):
    ticket_id: UUID
    problem: str


class ReconcileResponseSchema(Schema):
    event_id: UUID
    previous: int
    actual: int
    stored: int
    drift: int
    issues: list[InventoryIssueSchema]
