"""Schema for accounts module."""

from ninja import ModelSchema
from pydantic import UUID4

from .models import GigpassUser


class GigpassUserSchema(ModelSchema):
    id: UUID4
    email: str
    membership_tier: str | None = None

    class Meta:
        model = GigpassUser
        fields = ["id", "username", "email", "first_name", "last_name", "membership_tier", "is_staff"]
