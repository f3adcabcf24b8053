# src/events/signals.py

import typing as t

from django.db import transaction
from django.db.models.signals import post_delete, pre_delete
from django.dispatch import receiver

from accounts.models import GigpassUser
from events.models import Ticket, TicketUpload
from events.service.claim_service import release_user_claims
from events.tasks import delete_blob_task


@receiver(pre_delete, sender=GigpassUser)
def handle_user_deletion(sender: type[GigpassUser], instance: GigpassUser, **kwargs: t.Any) -> None:
    """Release the user's claims so their tickets return to the pool and counters stay right."""
    release_user_claims(instance)


@receiver(post_delete, sender=TicketUpload)
def handle_upload_deletion(sender: type[TicketUpload], instance: TicketUpload, **kwargs: t.Any) -> None:
    """Remove the source document once its upload record is gone."""
    if instance.source_path:
        path = instance.source_path
        transaction.on_commit(lambda: delete_blob_task.delay(path))


@receiver(post_delete, sender=Ticket)
def handle_ticket_cascade_deletion(sender: type[Ticket], instance: Ticket, **kwargs: t.Any) -> None:
    """Remove documents of tickets deleted by a cascade, e.g. with their event.

    Tickets deleted through the inventory service schedule their own cleanup.
    """
    if kwargs.get("origin") is not instance and instance.document_path:
        path = instance.document_path
        transaction.on_commit(lambda: delete_blob_task.delay(path))
