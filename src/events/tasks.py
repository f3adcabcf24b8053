"""Celery tasks for the ticket inventory."""

import structlog
from celery import shared_task

from events.exceptions import StorageError
from events.storage import ticket_storage

logger = structlog.get_logger(__name__)


@shared_task
def reconcile_claimed_counts_task() -> dict[str, int]:
    """Rebuild every event's claimed_count from its claims and audit the tickets."""
    from .service.capacity_service import reconcile_all

    results = reconcile_all()
    drifted = [result for result in results if result.changed]
    logger.info("claimed_counts_reconciled", events=len(results), drifted=len(drifted))
    return {"events": len(results), "drifted": len(drifted)}


@shared_task
def delete_blob_task(path: str) -> bool:
    """Delete a ticket document whose row is already gone.

    A failure is logged for manual cleanup and never retried into the caller.
    """
    try:
        ticket_storage.delete(path)
    except StorageError as e:
        logger.error("ticket_document_delete_failed", path=path, error=str(e))
        return False
    logger.info("ticket_document_deleted", path=path)
    return True
