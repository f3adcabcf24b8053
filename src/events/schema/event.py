"""Event and ticket type schemas."""

from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema

from events.models import Event, TicketType


class EventSchema(ModelSchema):
    remaining_capacity: int

    class Meta:
        model = Event
        fields = ["id", "name", "description", "event_date", "capacity", "claimed_count"]


class TicketTypeSchema(ModelSchema):
    """A ticket type as shown to members, with the number of tickets left."""

    event_id: UUID
    price: Decimal
    tier_criteria: list[str]
    available_count: int = 0

    class Meta:
        model = TicketType
        fields = ["id", "name", "description", "price", "quantity", "tier_criteria"]
