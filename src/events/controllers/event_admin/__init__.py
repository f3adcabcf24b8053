"""Event admin controllers package."""

from .tickets import EventAdminTicketsController

EVENT_ADMIN_CONTROLLERS: list[type] = [
    EventAdminTicketsController,
]

__all__ = [
    "EventAdminTicketsController",
    "EVENT_ADMIN_CONTROLLERS",
]
