# src/events/admin/base.py
"""Base admin components: link mixins."""

import typing as t

from django.urls import reverse
from django.utils.html import format_html


class UserLinkMixin:
    """Mixin to add a link to a user."""

    def user_link(self, obj: t.Any) -> str | None:
        user = getattr(obj, "user", None) or getattr(obj, "claimed_by", None)
        if user is None:
            return None
        url = reverse("admin:accounts_gigpassuser_change", args=[user.id])
        return format_html('<a href="{}">{}</a>', url, user.email or user.username)

    user_link.short_description = "User"  # type: ignore[attr-defined]


class EventLinkMixin:
    """Mixin to add a link to an event."""

    def event_link(self, obj: t.Any) -> str | None:
        if not hasattr(obj, "event") or not obj.event:
            return None
        url = reverse("admin:events_event_change", args=[obj.event.id])
        return format_html('<a href="{}">{}</a>', url, obj.event.name)

    event_link.short_description = "Event"  # type: ignore[attr-defined]
