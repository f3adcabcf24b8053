"""Claiming and releasing tickets.

Each operation is one transaction that changes three things together: the
ticket's claimed flag, the TicketClaim row and the event's claimed_count.
Overselling is prevented by conditional updates, not by reading first:

- a ticket is taken with ``UPDATE ... WHERE is_claimed = false``;
- the counter is moved with ``UPDATE ... WHERE claimed_count <= capacity - 1``;
- a second claim for the same user and event hits a unique constraint.

Whichever of these fails, the transaction rolls back as a whole.
"""

from uuid import UUID

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import GigpassUser
from accounts.service.membership import resolve_member, resolve_user_by_email
from events.exceptions import (
    AlreadyClaimedError,
    ClaimNotFoundError,
    IneligibleTierError,
    InventoryConsistencyError,
    NoTicketAvailableError,
    TicketNotFoundError,
    TicketValidationError,
)
from events.models import Event, Ticket, TicketClaim, TicketType

from . import capacity_service

logger = structlog.get_logger(__name__)


def _mark_claimed(ticket_id: UUID, user: GigpassUser) -> bool:
    """Flip a ticket to claimed if, and only if, it is still unclaimed."""
    return (
        Ticket.objects.filter(pk=ticket_id, is_claimed=False).update(
            is_claimed=True, claimed_by=user, claimed_at=timezone.now(), updated_at=timezone.now()
        )
        == 1
    )


def _mark_available(ticket_id: UUID) -> bool:
    """Flip a ticket back to available if it is currently claimed."""
    return (
        Ticket.objects.filter(pk=ticket_id, is_claimed=True).update(
            is_claimed=False, claimed_by=None, claimed_at=None, updated_at=timezone.now()
        )
        == 1
    )


def _take_oldest_available(ticket_type: TicketType, user: GigpassUser) -> Ticket:
    """Claim the oldest unclaimed ticket of a type.

    Rows locked by a concurrent claim are skipped where the database supports
    it; the conditional update is what guarantees a ticket is taken only once.
    """
    ticket_id = (
        Ticket.objects.filter(ticket_type=ticket_type)
        .available()
        .select_for_update(skip_locked=True)
        .values_list("pk", flat=True)
        .first()
    )
    if ticket_id is None or not _mark_claimed(ticket_id, user):
        raise NoTicketAvailableError()
    return Ticket.objects.get(pk=ticket_id)


def _create_claim(*, user: GigpassUser, event: Event, ticket: Ticket) -> TicketClaim:
    try:
        with transaction.atomic():
            return TicketClaim.objects.create(user=user, event=event, ticket=ticket, ticket_type=ticket.ticket_type)
    except IntegrityError as e:
        # A concurrent claim by the same user won the race on (user, event).
        raise AlreadyClaimedError() from e


@transaction.atomic
def claim_ticket(*, event: Event, ticket_type: TicketType, user: GigpassUser) -> TicketClaim:
    """Give the user one unclaimed ticket of ``ticket_type``.

    Args:
        event: The event to claim for.
        ticket_type: The ticket type to draw from. Must belong to ``event``.
        user: The claiming member.

    Returns:
        The new TicketClaim.

    Raises:
        IneligibleTierError: If the member's tier is not accepted by the type.
        AlreadyClaimedError: If the member already holds a claim for the event.
        NoTicketAvailableError: If every ticket of the type is claimed.
        CapacityExceededError: If the event is at capacity.
    """
    if ticket_type.event_id != event.pk:
        raise TicketValidationError("This ticket type does not belong to the event.")

    member = resolve_member(user)
    if not ticket_type.allows(member.tier):
        logger.info(
            "ticket_claim_ineligible",
            event_id=str(event.pk),
            ticket_type_id=str(ticket_type.pk),
            tier=member.tier,
        )
        raise IneligibleTierError()

    if TicketClaim.objects.filter(user=user, event=event).exists():
        raise AlreadyClaimedError()

    ticket = _take_oldest_available(ticket_type, user)
    claim = _create_claim(user=user, event=event, ticket=ticket)
    claimed_count = capacity_service.adjust_claimed_count(event.pk, +1)
    event.claimed_count = claimed_count

    logger.info(
        "ticket_claimed",
        event_id=str(event.pk),
        ticket_type_id=str(ticket_type.pk),
        ticket_id=str(ticket.pk),
        claim_id=str(claim.pk),
        claimed_count=claimed_count,
    )
    return claim


def release_claim(claim: TicketClaim) -> None:
    """Delete a locked claim, free its ticket and decrement the counter.

    Must run inside the caller's transaction.
    """
    event_id, ticket_id = claim.event_id, claim.ticket_id
    claim.delete()

    if not _mark_available(ticket_id):
        # The claim existed but the ticket was not flagged as claimed.
        logger.error("inventory_inconsistency", event_id=str(event_id), ticket_id=str(ticket_id), problem="unflagged")

    try:
        capacity_service.adjust_claimed_count(event_id, -1)
    except InventoryConsistencyError:
        # The counter was already too low; rebuild it from the claims instead.
        capacity_service.reconcile(event_id)


@transaction.atomic
def unclaim(claim_id: UUID, *, user: GigpassUser | None = None) -> None:
    """Release a claim and return its ticket to the pool.

    Args:
        claim_id: The claim to release.
        user: When given, only a claim owned by this user is released.

    Raises:
        ClaimNotFoundError: If the claim does not exist (for example because
            it was already released) or belongs to another user.
    """
    claims = TicketClaim.objects.select_for_update().filter(pk=claim_id)
    if user is not None:
        claims = claims.filter(user=user)
    claim = claims.first()
    if claim is None:
        raise ClaimNotFoundError()

    release_claim(claim)
    logger.info(
        "ticket_unclaimed",
        claim_id=str(claim_id),
        event_id=str(claim.event_id),
        ticket_id=str(claim.ticket_id),
    )


@transaction.atomic
def admin_unclaim(ticket_id: UUID) -> None:
    """Release whatever claim holds a ticket.

    Raises:
        TicketNotFoundError: If the ticket does not exist.
        ClaimNotFoundError: If the ticket is not claimed.
    """
    if not Ticket.objects.filter(pk=ticket_id).exists():
        raise TicketNotFoundError()
    claim = TicketClaim.objects.select_for_update().filter(ticket_id=ticket_id).first()
    if claim is None:
        if _mark_available(ticket_id):
            # Flagged without a claim. The counter only counts claims, so only the flag is reset.
            logger.error("inventory_inconsistency", ticket_id=str(ticket_id), problem="claimed_without_claim")
            return
        raise ClaimNotFoundError()

    release_claim(claim)
    logger.info("ticket_admin_unclaimed", ticket_id=str(ticket_id), event_id=str(claim.event_id))


@transaction.atomic
def admin_assign(ticket_id: UUID, email: str, *, enforce_tier: bool = False) -> TicketClaim:
    """Assign a specific ticket to the member with the given email.

    Administrators may hand out tickets across tiers, so the tier check is
    off unless ``enforce_tier`` is set. All other claim rules apply.

    Raises:
        TicketNotFoundError: If the ticket does not exist.
        UserNotFoundError: If no member has this email.
        TicketValidationError: If the ticket has no ticket type.
        IneligibleTierError: If ``enforce_tier`` and the tier does not match.
        AlreadyClaimedError: If the member already holds a claim for the event.
        NoTicketAvailableError: If the ticket is already claimed.
        CapacityExceededError: If the event is at capacity.
    """
    ticket = Ticket.objects.select_related("event", "ticket_type").filter(pk=ticket_id).first()
    if ticket is None:
        raise TicketNotFoundError()
    if ticket.ticket_type is None:
        raise TicketValidationError("Ticket type is missing for this ticket.")

    user = resolve_user_by_email(email)

    if enforce_tier and not ticket.ticket_type.allows(resolve_member(user).tier):
        raise IneligibleTierError()

    if TicketClaim.objects.filter(user=user, event_id=ticket.event_id).exists():
        raise AlreadyClaimedError()

    if not _mark_claimed(ticket.pk, user):
        raise NoTicketAvailableError("This ticket is already claimed.")

    claim = _create_claim(user=user, event=ticket.event, ticket=ticket)
    claimed_count = capacity_service.adjust_claimed_count(ticket.event_id, +1)
    ticket.event.claimed_count = claimed_count

    logger.info(
        "ticket_admin_assigned",
        event_id=str(ticket.event_id),
        ticket_id=str(ticket.pk),
        claim_id=str(claim.pk),
        user_id=str(user.pk),
        claimed_count=claimed_count,
    )
    return claim


@transaction.atomic
def release_user_claims(user: GigpassUser) -> int:
    """Release every claim a user holds, e.g. before the account is deleted."""
    released = 0
    for claim in TicketClaim.objects.select_for_update().filter(user=user):
        release_claim(claim)
        released += 1
    if released:
        logger.info("user_claims_released", user_id=str(user.pk), count=released)
    return released
