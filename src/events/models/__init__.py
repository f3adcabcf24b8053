from .event import Event, TicketType
from .ticket import Ticket, TicketClaim, TicketUpload

__all__ = [
    "Event",
    "Ticket",
    "TicketClaim",
    "TicketType",
    "TicketUpload",
]
