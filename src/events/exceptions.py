from common.exceptions import (
    CapacityError,
    ConsistencyError,
    EligibilityError,
    ExternalIOError,
    NotFoundError,
    ValidationError,
)


class TicketValidationError(ValidationError):
    """Raised when a ticket document or request payload is invalid."""

    code = "invalid_ticket_request"


class UnsupportedDocumentError(TicketValidationError):
    """Raised when an uploaded file is not an acceptable ticket document."""

    code = "unsupported_document"
    default_message = "Only PDF documents are accepted."


class DocumentTooLargeError(TicketValidationError):
    """Raised when an uploaded file exceeds the maximum upload size."""

    code = "document_too_large"
    default_message = "The document exceeds the maximum upload size."


class NoPagesSelectedError(TicketValidationError):
    """Raised when a commit selects no pages."""

    code = "no_pages_selected"
    default_message = "Select at least one page."


class InvalidPageNumberError(TicketValidationError):
    """Raised when a selected page does not exist in the source document."""

    code = "invalid_page_number"
    default_message = "The selected page does not exist in the document."


class MultiPageDocumentError(TicketValidationError):
    """Raised when a single ticket is added from a document with several pages."""

    code = "multi_page_document"
    default_message = "A single ticket must be a one-page document. Upload it for decomposition instead."


class AlreadyClaimedError(EligibilityError):
    """Raised when the member already holds a claim for the event."""

    code = "already_claimed"
    default_message = "You already have a ticket for this event."


class IneligibleTierError(EligibilityError):
    """Raised when the member's tier is not accepted by the ticket type."""

    code = "ineligible_tier"
    default_message = "Your membership tier is not eligible for this ticket type."


class CapacityExceededError(CapacityError):
    """Raised when the event's claimed count has reached its capacity."""

    code = "capacity_exceeded"
    default_message = "This event is at capacity."


class NoTicketAvailableError(CapacityError):
    """Raised when no unclaimed ticket of the requested type is left."""

    code = "no_ticket_available"
    default_message = "No tickets of this type are available."


class StorageError(ExternalIOError):
    """Raised when blob storage cannot read or write a document."""

    code = "storage_error"
    default_message = "The document storage is unavailable."


class DocumentProcessingError(ExternalIOError):
    """Raised when a PDF cannot be parsed, extracted or rendered."""

    code = "document_processing_error"
    default_message = "The document could not be processed."


class InventoryConsistencyError(ConsistencyError):
    """Raised when a claim, its ticket and the event counter disagree."""

    code = "inventory_inconsistent"


class ClaimNotFoundError(NotFoundError):
    """Raised when a claim does not exist or belongs to someone else."""

    code = "claim_not_found"
    default_message = "Claim not found."


class TicketNotFoundError(NotFoundError):
    """Raised when a ticket does not exist."""

    code = "ticket_not_found"
    default_message = "Ticket not found."
