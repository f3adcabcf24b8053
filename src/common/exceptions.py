"""Error categories shared by all apps.

Every domain error carries a stable ``code`` that API clients can switch on.
The API layer maps each category to an HTTP status.
"""


class GigpassError(Exception):
    """Base class for domain errors."""

    code = "error"
    default_message = "An error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GigpassError):
    """Raised when input is malformed or refers to impossible values."""

    code = "validation_error"
    default_message = "Invalid input."


class EligibilityError(GigpassError):
    """Raised when a member may not perform a claim."""

    code = "not_eligible"
    default_message = "You are not eligible for this ticket."


class CapacityError(GigpassError):
    """Raised when no capacity or inventory is left."""

    code = "capacity_error"
    default_message = "No capacity left."


class ExternalIOError(GigpassError):
    """Raised when blob storage or document processing fails."""

    code = "external_io_error"
    default_message = "An external operation failed."


class ConsistencyError(GigpassError):
    """Raised when stored state violates an inventory invariant."""

    code = "consistency_error"
    default_message = "Inventory state is inconsistent."


class NotFoundError(GigpassError):
    """Raised when a referenced record does not exist."""

    code = "not_found"
    default_message = "Not found."
