"""Turns an uploaded PDF into one ticket per selected page.

Ingesting stores the source document and returns page previews; nothing is
claimable yet. Committing a page selection then produces one single-page
document per page:

- a single-page source is stored as is;
- otherwise the page is copied structurally, keeping text and vector barcodes;
- if copying fails, the page is rendered to a high-resolution image instead.

Pages are independent: a page that fails both ways is reported and the
others still become tickets. Re-committing skips pages that already have a
ticket, so failed pages can simply be retried.
"""

import hashlib
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils.text import get_valid_filename

from accounts.models import GigpassUser
from events import documents
from events.exceptions import (
    DocumentProcessingError,
    DocumentTooLargeError,
    InvalidPageNumberError,
    NoPagesSelectedError,
    StorageError,
    TicketValidationError,
    UnsupportedDocumentError,
)
from events.models import Event, Ticket, TicketType, TicketUpload
from events.storage import ticket_storage

logger = structlog.get_logger(__name__)


class PageOutcome(StrEnum):
    ORIGINAL = "original"
    EXTRACTED = "extracted"
    RASTERIZED = "rasterized"
    FAILED = "failed"


@dataclass(frozen=True)
class PageResult:
    page_number: int
    outcome: PageOutcome
    ticket_id: uuid.UUID | None = None
    document_path: str | None = None
    error: str | None = None


@dataclass
class DecompositionResult:
    """Per-page outcome of a commit.

    Attributes:
        pages: One result per processed page, in page order.
        skipped: Pages that already had a ticket from an earlier commit.
    """

    upload_id: uuid.UUID
    pages: list[PageResult] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)

    @property
    def created(self) -> list[PageResult]:
        return [page for page in self.pages if page.outcome != PageOutcome.FAILED]

    @property
    def failures(self) -> list[PageResult]:
        return [page for page in self.pages if page.outcome == PageOutcome.FAILED]

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def is_complete(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class IngestResult:
    upload: TicketUpload
    previews: list[documents.PagePreview]


def source_path_for(event_id: uuid.UUID, upload_id: uuid.UUID, filename: str) -> str:
    return f"protected/event-{event_id}/uploads/{upload_id.hex}_{get_valid_filename(filename) or 'source.pdf'}"


def ticket_path_for(upload: TicketUpload, page_number: int) -> str:
    return f"protected/event-{upload.event_id}/tickets/{upload.pk.hex[:12]}_page{page_number}_ticket.pdf"


def validate_document(content: bytes) -> int:
    """Check size and type of a ticket document and return its page count.

    Raises:
        DocumentTooLargeError: If the document exceeds TICKET_MAX_UPLOAD_SIZE.
        UnsupportedDocumentError: If it is not a PDF or has no pages.
        DocumentProcessingError: If it looks like a PDF but cannot be opened.
    """
    if not content:
        raise UnsupportedDocumentError("The document is empty.")
    if len(content) > settings.TICKET_MAX_UPLOAD_SIZE:
        raise DocumentTooLargeError(
            f"The document exceeds the maximum upload size of {settings.TICKET_MAX_UPLOAD_SIZE // (1024 * 1024)}MB."
        )
    mime_type = documents.detect_mime_type(content)
    if mime_type not in settings.TICKET_ALLOWED_MIME_TYPES:
        raise UnsupportedDocumentError(f"File type '{mime_type}' is not allowed. Only PDF documents are accepted.")
    page_count = documents.count_pages(content)
    if page_count < 1:
        raise UnsupportedDocumentError("The document has no pages.")
    return page_count


def ingest_document(
    *,
    event: Event,
    ticket_type: TicketType | None,
    content: bytes,
    filename: str,
    uploaded_by: GigpassUser | None = None,
) -> IngestResult:
    """Store a source document and render page previews for selection.

    Args:
        event: The event the tickets are for.
        ticket_type: The ticket type the pages will become. Required.
        content: The uploaded file's bytes.
        filename: The client's file name, kept for display.
        uploaded_by: The admin who uploaded the file.

    Returns:
        The persisted upload and one JPEG preview per page.

    Raises:
        TicketValidationError: If the ticket type is missing or foreign.
        DocumentTooLargeError: If the file is too large.
        UnsupportedDocumentError: If the file is not a usable PDF.
        DocumentProcessingError: If the PDF cannot be rendered.
        StorageError: If the source cannot be stored.
    """
    if ticket_type is None:
        raise TicketValidationError("Select a ticket type before uploading.")
    if ticket_type.event_id != event.pk:
        raise TicketValidationError("This ticket type does not belong to the event.")

    page_count = validate_document(content)
    previews = documents.render_previews(
        content, scale=settings.TICKET_PREVIEW_SCALE, quality=settings.TICKET_PREVIEW_QUALITY
    )

    upload_id = uuid.uuid4()
    source_path = ticket_storage.upload(source_path_for(event.pk, upload_id, filename), content)
    try:
        upload = TicketUpload.objects.create(
            id=upload_id,
            event=event,
            ticket_type=ticket_type,
            source_path=source_path,
            original_filename=filename[:255],
            file_hash=hashlib.sha256(content).hexdigest(),
            page_count=page_count,
            uploaded_by=uploaded_by,
        )
    except Exception:
        _discard_blob(source_path)
        raise
    logger.info(
        "ticket_document_ingested",
        event_id=str(event.pk),
        upload_id=str(upload.pk),
        page_count=page_count,
        size=len(content),
    )
    return IngestResult(upload=upload, previews=previews)


def _normalize_selection(upload: TicketUpload, page_numbers: list[int]) -> list[int]:
    if not page_numbers:
        raise NoPagesSelectedError()
    pages = sorted(set(page_numbers))
    invalid = [page for page in pages if not 1 <= page <= upload.page_count]
    if invalid:
        raise InvalidPageNumberError(
            f"Pages {', '.join(map(str, invalid))} do not exist; the document has {upload.page_count} pages."
        )
    return pages


def _render_single_page(content: bytes, upload: TicketUpload, page_number: int) -> tuple[bytes, PageOutcome]:
    if upload.page_count == 1:
        return content, PageOutcome.ORIGINAL
    try:
        return documents.extract_page(content, page_number), PageOutcome.EXTRACTED
    except DocumentProcessingError as e:
        logger.warning(
            "page_extraction_failed",
            upload_id=str(upload.pk),
            page_number=page_number,
            error=str(e),
        )
    data = documents.rasterize_page(
        content, page_number, scale=settings.TICKET_RASTER_SCALE, quality=settings.TICKET_RASTER_QUALITY
    )
    logger.info("page_rasterized", upload_id=str(upload.pk), page_number=page_number)
    return data, PageOutcome.RASTERIZED


def _commit_page(content: bytes, upload: TicketUpload, page_number: int) -> PageResult | None:
    """Store one page and create its ticket. Returns None if another commit got there first."""
    data, outcome = _render_single_page(content, upload, page_number)
    path = ticket_storage.upload(ticket_path_for(upload, page_number), data)
    try:
        with transaction.atomic():
            ticket = Ticket.objects.create(
                event_id=upload.event_id,
                ticket_type_id=upload.ticket_type_id,
                upload=upload,
                page_number=page_number,
                document_path=path,
            )
    except (IntegrityError, DjangoValidationError):
        winner_path = (
            Ticket.objects.filter(upload=upload, page_number=page_number).values_list("document_path", flat=True).first()
        )
        if winner_path is not None:
            # Same page committed concurrently. Keep our blob only if the winner's ticket uses it.
            if winner_path != path:
                _discard_blob(path)
            return None
        _discard_blob(path)
        raise
    except Exception:
        _discard_blob(path)
        raise
    return PageResult(page_number=page_number, outcome=outcome, ticket_id=ticket.pk, document_path=path)


def _discard_blob(path: str) -> None:
    try:
        ticket_storage.delete(path)
    except StorageError as e:
        logger.error("ticket_document_delete_failed", path=path, error=str(e))


def commit_selected_pages(upload: TicketUpload, page_numbers: list[int]) -> DecompositionResult:
    """Create one ticket per selected page of an ingested document.

    Args:
        upload: The ingested source document.
        page_numbers: 1-based page numbers to turn into tickets.

    Returns:
        The outcome of every selected page.

    Raises:
        NoPagesSelectedError: If ``page_numbers`` is empty.
        InvalidPageNumberError: If a page does not exist in the source.
        StorageError: If the source document cannot be read.
    """
    pages = _normalize_selection(upload, page_numbers)
    result = DecompositionResult(upload_id=upload.pk)

    existing = set(
        Ticket.objects.filter(upload=upload, page_number__in=pages).values_list("page_number", flat=True)
    )
    content = ticket_storage.read(upload.source_path)

    for page_number in pages:
        if page_number in existing:
            result.skipped.append(page_number)
            continue
        try:
            page_result = _commit_page(content, upload, page_number)
        except Exception as e:
            logger.error(
                "page_decomposition_failed",
                upload_id=str(upload.pk),
                page_number=page_number,
                error=str(e),
                exc_info=True,
            )
            result.pages.append(PageResult(page_number=page_number, outcome=PageOutcome.FAILED, error=str(e)))
            continue
        if page_result is None:
            result.skipped.append(page_number)
        else:
            result.pages.append(page_result)

    logger.info(
        "ticket_document_committed",
        upload_id=str(upload.pk),
        event_id=str(upload.event_id),
        created=len(result.created),
        failed=len(result.failures),
        skipped=len(result.skipped),
    )
    return result
