"""Blob storage for ticket documents.

Thin wrapper over Django's default storage. Paths are opaque strings chosen
by the caller; writes never silently rename an existing blob.
"""

import structlog
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage

from common.signing import generate_signed_url

from .exceptions import StorageError

logger = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


class TicketStorage:
    def __init__(self, storage: Storage | None = None) -> None:
        self._storage = storage

    @property
    def storage(self) -> Storage:
        # default_storage is resolved on each access so that MEDIA_ROOT overrides apply
        return self._storage or default_storage

    def upload(self, path: str, content: bytes) -> str:
        """Store ``content`` at ``path``, replacing any previous blob there.

        Raises:
            StorageError: If the write fails.
        """
        try:
            if self.storage.exists(path):
                self.storage.delete(path)
            saved = self.storage.save(path, ContentFile(content))
        except OSError as e:
            logger.error("ticket_storage_upload_failed", path=path, error=str(e))
            raise StorageError(f"Could not store document at {path}.") from e
        if saved != path:
            # The backend renamed the file; the caller must not lose track of it.
            logger.warning("ticket_storage_path_renamed", requested=path, saved=saved)
        return saved

    def read(self, path: str) -> bytes:
        """Read a blob.

        Raises:
            StorageError: If the blob is missing or unreadable.
        """
        try:
            with self.storage.open(path, "rb") as f:
                data: bytes = f.read()
        except OSError as e:
            logger.error("ticket_storage_read_failed", path=path, error=str(e))
            raise StorageError(f"Could not read document at {path}.") from e
        return data

    def delete(self, path: str) -> None:
        """Delete a blob. Deleting a missing blob is not an error.

        Raises:
            StorageError: If the backend refuses the delete.
        """
        try:
            self.storage.delete(path)
        except OSError as e:
            raise StorageError(f"Could not delete document at {path}.") from e

    def exists(self, path: str) -> bool:
        return bool(path) and self.storage.exists(path)

    def get_signed_read_url(self, path: str, ttl_seconds: int) -> str:
        """Return a time-limited URL for reading the blob at ``path``."""
        return generate_signed_url(path, expires_in=ttl_seconds)


ticket_storage = TicketStorage()
