import typing as t
import uuid

from django.db import models


class TimeStampedModel(models.Model):
    """Base model with a UUID key and timestamps.

    Fields listed in ``SERVICE_MANAGED_FIELDS`` are written only by queryset
    updates in the services. ``save()`` on an existing row reloads them and
    leaves them out of the UPDATE, so a stale instance (e.g. an admin form)
    cannot overwrite a concurrent change.
    """

    SERVICE_MANAGED_FIELDS: t.ClassVar[tuple[str, ...]] = ()

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    class Meta:
        abstract = True

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Override the save method to call full_clean before saving."""
        if self.SERVICE_MANAGED_FIELDS and not self._state.adding and kwargs.get("update_fields") is None:
            self.refresh_from_db(fields=list(self.SERVICE_MANAGED_FIELDS))
            kwargs["update_fields"] = [
                field.name
                for field in self._meta.concrete_fields
                if not field.primary_key and field.name not in self.SERVICE_MANAGED_FIELDS
            ]
        self.full_clean()
        super().save(*args, **kwargs)
