"""HMAC-based URL signing for protected file access.

Ticket documents live under ``protected/`` in blob storage and are never
served by a public URL. Readers get a short-lived signed URL instead; the
reverse proxy asks ``/api/media/validate/<path>`` whether the signature and
expiry are valid before serving the file.

URL Format:
    /media/protected/event-<id>/tickets/abc_page1_ticket.pdf?exp=1704067200&sig=a1b2c3d4e5f6

Signatures are derived from ``SECRET_KEY`` with a domain-specific prefix,
truncated to 16 hex chars and compared in constant time.
"""

import hashlib
import hmac
import time
import typing as t
from functools import lru_cache
from urllib.parse import urlencode

from django.conf import settings

__all__ = [
    "PROTECTED_PATH_PREFIX",
    "DEFAULT_EXPIRES_IN",
    "SIGNATURE_LENGTH",
    "generate_signature",
    "verify_signature",
    "generate_signed_url",
    "is_protected_path",
    "parse_signed_url_params",
    "SignedURLParams",
]

SIGNATURE_LENGTH = 16

# Five minutes: long enough to start a download, short enough not to be shareable.
DEFAULT_EXPIRES_IN = 300

_KEY_DOMAIN = "gigpass:signed-url:v1"

# Must match the reverse proxy's forward-auth configuration.
PROTECTED_PATH_PREFIX = "protected/"


@lru_cache(maxsize=1)
def _get_signing_key() -> bytes:
    """Derive the URL signing key from SECRET_KEY.

    Computed lazily so that settings need not be configured at import time.
    """
    return hashlib.sha256(f"{_KEY_DOMAIN}:{settings.SECRET_KEY}".encode()).digest()


def generate_signature(path: str, expires: int) -> str:
    """Generate an HMAC signature for a path and expiration timestamp.

    Args:
        path: The full media path without query string, e.g. "/media/protected/abc.pdf".
        expires: Unix timestamp when the URL expires.

    Returns:
        Hex-encoded signature truncated to SIGNATURE_LENGTH chars.
    """
    message = f"{path}:{expires}"
    return hmac.new(_get_signing_key(), message.encode(), hashlib.sha256).hexdigest()[:SIGNATURE_LENGTH]


def verify_signature(path: str, exp: str, sig: str) -> bool:
    """Return True if the signature matches the path and has not expired."""
    try:
        expires = int(exp)
    except (ValueError, TypeError):
        return False

    if expires <= time.time():
        return False

    return hmac.compare_digest(sig, generate_signature(path, expires))


def generate_signed_url(path: str, *, expires_in: int = DEFAULT_EXPIRES_IN) -> str:
    """Generate a signed URL for a storage path.

    Args:
        path: The storage-relative path, e.g. "protected/event-1/tickets/x.pdf".
        expires_in: Seconds until the URL expires.

    Returns:
        The media URL with ``exp`` and ``sig`` query parameters.
    """
    if expires_in <= 0:
        raise ValueError("expires_in must be positive.")
    expires = int(time.time()) + expires_in

    media_url = settings.MEDIA_URL.rstrip("/")
    full_path = f"{media_url}/{path.lstrip('/')}"

    query = urlencode({"exp": expires, "sig": generate_signature(full_path, expires)})
    return f"{full_path}?{query}"


def is_protected_path(file_path: str) -> bool:
    """Check if a storage path requires signed URL access."""
    return bool(file_path) and file_path.startswith(PROTECTED_PATH_PREFIX)


class SignedURLParams(t.NamedTuple):
    """Parsed signed URL parameters."""

    path: str
    exp: str
    sig: str


def parse_signed_url_params(full_path: str, exp: str | None, sig: str | None) -> SignedURLParams | None:
    """Bundle the signed URL parameters, or return None if any is missing."""
    if not exp or not sig:
        return None
    return SignedURLParams(path=full_path, exp=exp, sig=sig)
