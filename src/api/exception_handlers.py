"""Exception handlers for the API.

Domain errors carry a stable ``code``; the handlers here only choose the HTTP
status for each error category and render ``{"code": ..., "detail": ...}``.
"""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from common.exceptions import (
    CapacityError,
    ConsistencyError,
    EligibilityError,
    ExternalIOError,
    GigpassError,
    NotFoundError,
)
from common.exceptions import ValidationError as GigpassValidationError
from events.exceptions import AlreadyClaimedError

logger = structlog.get_logger(__name__)

# Most specific class first; the first match decides the status.
STATUS_BY_CATEGORY: tuple[tuple[type[GigpassError], int], ...] = (
    (AlreadyClaimedError, 409),
    (GigpassValidationError, 400),
    (EligibilityError, 403),
    (CapacityError, 409),
    (NotFoundError, 404),
    (ExternalIOError, 502),
    (ConsistencyError, 500),
)


def status_for(exc: GigpassError) -> int:
    """Return the HTTP status for a domain error."""
    for category, status in STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 400


def handle_gigpass_error(request: HttpRequest, exc: GigpassError | t.Type[GigpassError]) -> Response:
    """Render a domain error with its code and message."""
    assert isinstance(exc, GigpassError)
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.info
    log("domain_error", code=exc.code, status=status, detail=exc.message, path=request.path)
    return Response(status=status, data={"code": exc.code, "detail": exc.message})


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    metadata = {
        "headers": obfuscate(dict(request.headers)),
        "method": request.method,
        "path": request.path,
        "GET": obfuscate(request.GET.dict()),
        "user": str(request.user) if getattr(request, "user", None) else None,
    }
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            metadata["json_payload"] = obfuscate(orjson.loads(request.body))
        except orjson.JSONDecodeError:  # pragma: no cover
            pass
    logger.exception("INTERNAL_SERVER_ERROR", exc_info=True, stack_info=True, **metadata)
    data = {"code": "internal_error", "detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    assert isinstance(exc, ValidationError)
    logger.warning("VALIDATION_ERROR", messages=exc.messages)
    if hasattr(exc, "error_dict"):
        errors = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        errors = {"__all__": exc.messages}
    return Response(status=400, data={"errors": errors})


SENSITIVE_KEYS = {"password", "token", "x-api-key", "authorization", "authentication", "cookie"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    if not isinstance(data, dict):
        return data
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
