import typing as t
import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.db.models.functions import Lower


class MembershipTier(models.TextChoices):
    """The closed set of membership tiers a member can hold.

    Ticket types list the tiers they are open to; adding a tier is a code
    change plus a migration, never a free-form string.
    """

    STANDARD = "standard", "Standard"
    PLUS = "plus", "Plus"
    PREMIUM = "premium", "Premium"


class GigpassUserManager(UserManager["GigpassUser"]):
    def get_by_email(self, email: str) -> "GigpassUser":
        """Case-insensitive lookup on a trimmed email address."""
        return self.get(email__iexact=email.strip())


class GigpassUser(AbstractUser):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    membership_tier = models.CharField(
        max_length=20,
        choices=MembershipTier.choices,
        null=True,
        blank=True,
        db_index=True,
        help_text="Active membership tier. Empty means no active membership.",
    )

    objects = GigpassUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]
        constraints = [
            models.UniqueConstraint(Lower("email"), name="unique_user_email_ci"),
        ]

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Normalize the email before saving."""
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.username
