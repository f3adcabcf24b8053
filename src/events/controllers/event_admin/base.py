import typing as t
from uuid import UUID

from common.controllers import UserAwareController
from events import models


class EventAdminBaseController(UserAwareController):
    """Base controller for event admin endpoints.

    Subclasses should be decorated with @api_controller to register routes.
    """

    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(models.Event, pk=event_id))

    def get_ticket_type(self, event: models.Event, ticket_type_id: UUID) -> models.TicketType:
        return t.cast(
            models.TicketType, self.get_object_or_exception(models.TicketType, pk=ticket_type_id, event=event)
        )

    def get_ticket(self, event: models.Event, ticket_id: UUID) -> models.Ticket:
        return t.cast(models.Ticket, self.get_object_or_exception(models.Ticket, pk=ticket_id, event=event))
