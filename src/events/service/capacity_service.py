"""Keeps each event's claimed_count in step with its claims.

``Event.claimed_count`` is a cache of ``count(TicketClaim where event)``.
Writers adjust it inside the same transaction as the claim change;
``reconcile`` rebuilds it from the claims when the two have drifted.
"""

from dataclasses import dataclass
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import Count, F, Q

from events.exceptions import CapacityExceededError, InventoryConsistencyError
from events.models import Event, Ticket, TicketClaim

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of rebuilding one event's counter.

    ``actual`` is the number of claims, ``stored`` the value written to
    ``claimed_count``. They differ only when claims exceed capacity, since the
    counter is constrained to ``[0, capacity]``.
    """

    event_id: UUID
    previous: int
    actual: int
    stored: int

    @property
    def drift(self) -> int:
        return self.previous - self.actual

    @property
    def changed(self) -> bool:
        return self.previous != self.stored

    @property
    def over_capacity(self) -> bool:
        return self.actual > self.stored


@dataclass(frozen=True)
class InventoryIssue:
    """A ticket whose claimed flag disagrees with its claim."""

    ticket_id: UUID
    problem: str


def adjust_claimed_count(event_id: UUID, delta: int) -> int:
    """Move an event's claimed_count by ``delta`` without leaving [0, capacity].

    The update is a single conditional statement, so two concurrent callers
    can never both take the last unit of capacity. Must run inside the
    transaction that changes the claims.

    Args:
        event_id: The event to adjust.
        delta: +1 for a new claim, -1 for a released one.

    Returns:
        The new claimed_count.

    Raises:
        CapacityExceededError: If incrementing would exceed capacity.
        InventoryConsistencyError: If decrementing would go below zero, if the
            event does not exist, or if called outside a transaction.
    """
    if not transaction.get_connection().in_atomic_block:
        raise InventoryConsistencyError("claimed_count must be adjusted inside a transaction.")
    if delta == 0:
        return Event.objects.values_list("claimed_count", flat=True).get(pk=event_id)

    queryset = Event.objects.filter(pk=event_id)
    if delta > 0:
        queryset = queryset.filter(claimed_count__lte=F("capacity") - delta)
    else:
        queryset = queryset.filter(claimed_count__gte=-delta)

    updated = queryset.update(claimed_count=F("claimed_count") + delta)
    if updated:
        return Event.objects.values_list("claimed_count", flat=True).get(pk=event_id)

    if not Event.objects.filter(pk=event_id).exists():
        raise InventoryConsistencyError(f"Event {event_id} does not exist.")
    if delta > 0:
        raise CapacityExceededError()
    logger.error("claimed_count_underflow", event_id=str(event_id), delta=delta)
    raise InventoryConsistencyError("claimed_count would drop below zero.")


@transaction.atomic
def reconcile(event_id: UUID) -> ReconciliationResult:
    """Recompute claimed_count from the event's claims and store it.

    Safe to run at any time; it takes the event row lock so that it
    serializes with claims on the same event.

    If there are more claims than capacity (for example after capacity was
    lowered outside the admin), the counter is stored as ``capacity`` and
    ``event_over_capacity`` is logged on every run until an administrator
    releases claims or raises capacity. The result reports both the claim
    count (``actual``) and the value written (``stored``).
    """
    event = Event.objects.select_for_update().get(pk=event_id)
    actual = TicketClaim.objects.filter(event_id=event_id).count()
    result = ReconciliationResult(
        event_id=event.pk,
        previous=event.claimed_count,
        actual=actual,
        stored=min(actual, event.capacity),
    )

    if result.over_capacity:
        logger.error(
            "event_over_capacity",
            event_id=str(event_id),
            claims=actual,
            capacity=event.capacity,
        )
    if result.changed:
        Event.objects.filter(pk=event_id).update(claimed_count=result.stored)
        logger.warning(
            "claimed_count_reconciled",
            event_id=str(event_id),
            previous=result.previous,
            actual=actual,
            stored=result.stored,
            drift=result.drift,
        )
    return result


def audit_inventory(event_id: UUID) -> list[InventoryIssue]:
    """Find tickets whose claimed flag disagrees with the existence of a claim."""
    tickets = (
        Ticket.objects.filter(event_id=event_id)
        .annotate(claim_count=Count("claim"))
        .filter(Q(is_claimed=True, claim_count=0) | Q(is_claimed=False, claim_count__gt=0))
        .values_list("id", "is_claimed")
    )
    issues = [
        InventoryIssue(
            ticket_id=ticket_id,
            problem="claimed_without_claim" if is_claimed else "claim_on_unclaimed_ticket",
        )
        for ticket_id, is_claimed in tickets
    ]
    for issue in issues:
        logger.error(
            "inventory_inconsistency",
            event_id=str(event_id),
            ticket_id=str(issue.ticket_id),
            problem=issue.problem,
        )
    return issues


def reconcile_all() -> list[ReconciliationResult]:
    """Reconcile and audit every event."""
    results = []
    for event_id in Event.objects.values_list("id", flat=True).iterator():
        results.append(reconcile(event_id))
        audit_inventory(event_id)
    return results
