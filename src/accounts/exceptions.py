from common.exceptions import NotFoundError


class UserNotFoundError(NotFoundError):
    """Raised when no user matches the given identity."""

    code = "user_not_found"
    default_message = "No user with this email address."
