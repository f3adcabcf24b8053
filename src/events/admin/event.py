# src/events/admin/event.py
"""Admin classes for Event and TicketType."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from unfold.admin import ModelAdmin, TabularInline

from events import models
from events.admin.base import EventLinkMixin
from events.service import capacity_service


class TicketTypeInline(TabularInline):  # type: ignore[misc]
    model = models.TicketType
    extra = 0
    fields = ["name", "price", "quantity", "tier_criteria"]


@admin.register(models.Event)
class EventAdmin(ModelAdmin):  # type: ignore[misc]
    """Admin model for Events."""

    list_display = ["name", "event_date", "capacity", "claimed_count", "remaining_capacity"]
    search_fields = ["name"]
    date_hierarchy = "event_date"
    readonly_fields = ["claimed_count", "created_at", "updated_at"]
    inlines = [TicketTypeInline]
    actions = ["reconcile_claimed_count"]

    @admin.action(description="Recompute claimed count from claims")
    def reconcile_claimed_count(self, request: HttpRequest, queryset: QuerySet[models.Event]) -> None:
        for event in queryset:
            result = capacity_service.reconcile(event.pk)
            issues = capacity_service.audit_inventory(event.pk)
            level = messages.WARNING if result.changed or result.over_capacity or issues else messages.SUCCESS
            self.message_user(
                request,
                f"{event.name}: {result.previous} -> {result.stored} ({result.actual} claims), "
                f"{len(issues)} inconsistent tickets.",
                level,
            )


@admin.register(models.TicketType)
class TicketTypeAdmin(ModelAdmin, EventLinkMixin):  # type: ignore[misc]
    list_display = ["name", "event_link", "price", "quantity", "tier_criteria"]
    list_filter = ["event"]
    search_fields = ["name", "event__name"]
    list_select_related = ["event"]
