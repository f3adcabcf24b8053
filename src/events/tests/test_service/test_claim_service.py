import threading
import typing as t
import uuid

import pytest
from django.db import connection

from accounts.exceptions import UserNotFoundError
from accounts.models import GigpassUser, MembershipTier
from common.exceptions import GigpassError
from events.exceptions import (
    AlreadyClaimedError,
    CapacityExceededError,
    ClaimNotFoundError,
    IneligibleTierError,
    NoTicketAvailableError,
    TicketNotFoundError,
    TicketValidationError,
)
from events.models import Event, Ticket, TicketClaim, TicketType
from events.service import claim_service

pytestmark = pytest.mark.django_db


def _refresh(*objs: t.Any) -> None:
    for obj in objs:
        obj.refresh_from_db()


class TestClaimTicket:
    def test_claims_oldest_ticket(
        self, event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        claim = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        oldest = standard_tickets[0]
        _refresh(event, oldest)
        assert claim.ticket == oldest
        assert claim.ticket_type == standard_type
        assert oldest.is_claimed
        assert oldest.claimed_by == member_user
        assert oldest.claimed_at is not None
        assert event.claimed_count == 1

    def test_second_claim_for_same_event_is_rejected(
        self, event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        with pytest.raises(AlreadyClaimedError):
            claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        event.refresh_from_db()
        assert event.claimed_count == 1
        assert Ticket.objects.filter(is_claimed=True).count() == 1

    def test_ineligible_tier(
        self,
        event: Event,
        premium_type: TicketType,
        ticket_factory: t.Callable[..., list[Ticket]],
        member_user: GigpassUser,
    ) -> None:
        ticket_factory(premium_type)

        with pytest.raises(IneligibleTierError):
            claim_service.claim_ticket(event=event, ticket_type=premium_type, user=member_user)

        assert not TicketClaim.objects.exists()

    def test_member_without_tier_is_ineligible(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        gigpass_user_factory: t.Callable[..., GigpassUser],
    ) -> None:
        with pytest.raises(IneligibleTierError):
            claim_service.claim_ticket(
                event=event, ticket_type=standard_type, user=gigpass_user_factory(membership_tier=None)
            )

    def test_sold_out_type(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        gigpass_user_factory: t.Callable[..., GigpassUser],
    ) -> None:
        for _ in standard_tickets:
            claim_service.claim_ticket(event=event, ticket_type=standard_type, user=gigpass_user_factory())

        with pytest.raises(NoTicketAvailableError):
            claim_service.claim_ticket(event=event, ticket_type=standard_type, user=gigpass_user_factory())

        event.refresh_from_db()
        assert event.claimed_count == 3

    def test_event_at_capacity_rolls_back(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        gigpass_user_factory: t.Callable[..., GigpassUser],
    ) -> None:
        Event.objects.filter(pk=event.pk).update(capacity=1)
        claim_service.claim_ticket(event=event, ticket_type=standard_type, user=gigpass_user_factory())

        with pytest.raises(CapacityExceededError):
            claim_service.claim_ticket(event=event, ticket_type=standard_type, user=gigpass_user_factory())

        # The ticket taken by the failed attempt is back in the pool.
        assert Ticket.objects.filter(is_claimed=True).count() == 1
        assert TicketClaim.objects.count() == 1

    def test_ticket_type_of_another_event(
        self, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        other_event = Event.objects.create(name="Other", event_date=standard_type.event.event_date, capacity=5)

        with pytest.raises(TicketValidationError):
            claim_service.claim_ticket(event=other_event, ticket_type=standard_type, user=member_user)

    def test_errors_share_a_base_with_a_code(self, event: Event, standard_type: TicketType) -> None:
        with pytest.raises(GigpassError) as exc_info:
            claim_service.claim_ticket(
                event=event, ticket_type=standard_type, user=GigpassUser.objects.create_user("x", "x@example.com")
            )

        assert exc_info.value.code == "ineligible_tier"


class TestUnclaim:
    @pytest.fixture
    def claim(
        self, event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> TicketClaim:
        return claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

    def test_returns_ticket_to_pool(self, event: Event, claim: TicketClaim, member_user: GigpassUser) -> None:
        ticket = claim.ticket

        claim_service.unclaim(claim.pk, user=member_user)

        _refresh(event, ticket)
        assert not TicketClaim.objects.filter(pk=claim.pk).exists()
        assert not ticket.is_claimed
        assert ticket.claimed_by is None
        assert ticket.claimed_at is None
        assert event.claimed_count == 0

    def test_released_ticket_can_be_claimed_again(
        self, event: Event, standard_type: TicketType, claim: TicketClaim, member_user: GigpassUser
    ) -> None:
        claim_service.unclaim(claim.pk)

        again = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        assert again.ticket_id == claim.ticket_id

    def test_unclaim_twice(self, claim: TicketClaim) -> None:
        claim_service.unclaim(claim.pk)

        with pytest.raises(ClaimNotFoundError):
            claim_service.unclaim(claim.pk)

    def test_only_the_owner_can_unclaim(self, claim: TicketClaim, other_member: GigpassUser) -> None:
        with pytest.raises(ClaimNotFoundError):
            claim_service.unclaim(claim.pk, user=other_member)

        assert TicketClaim.objects.filter(pk=claim.pk).exists()

    def test_drifted_counter_is_reconciled(self, event: Event, claim: TicketClaim) -> None:
        Event.objects.filter(pk=event.pk).update(claimed_count=0)

        claim_service.unclaim(claim.pk)

        event.refresh_from_db()
        assert event.claimed_count == 0
        assert not TicketClaim.objects.exists()


class TestAdminUnclaim:
    def test_releases_any_users_claim(
        self, event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        claim = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

        claim_service.admin_unclaim(claim.ticket_id)

        event.refresh_from_db()
        assert event.claimed_count == 0
        assert not Ticket.objects.get(pk=claim.ticket_id).is_claimed

    def test_unclaimed_ticket(self, standard_tickets: list[Ticket]) -> None:
        with pytest.raises(ClaimNotFoundError):
            claim_service.admin_unclaim(standard_tickets[0].pk)

    def test_unknown_ticket(self) -> None:
        with pytest.raises(TicketNotFoundError):
            claim_service.admin_unclaim(uuid.uuid4())

    def test_heals_ticket_flagged_without_claim(self, event: Event, standard_tickets: list[Ticket]) -> None:
        ticket = standard_tickets[0]
        Ticket.objects.filter(pk=ticket.pk).update(is_claimed=True)

        claim_service.admin_unclaim(ticket.pk)

        ticket.refresh_from_db()
        event.refresh_from_db()
        assert not ticket.is_claimed
        assert event.claimed_count == 0


class TestAdminAssign:
    def test_assigns_specific_ticket(
        self, event: Event, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        ticket = standard_tickets[2]

        claim = claim_service.admin_assign(ticket.pk, "  MEMBER@example.com ")

        _refresh(event, ticket)
        assert claim.user == member_user
        assert claim.ticket == ticket
        assert ticket.is_claimed
        assert event.claimed_count == 1

    def test_tier_is_not_checked_by_default(self, standard_tickets: list[Ticket], premium_user: GigpassUser) -> None:
        claim = claim_service.admin_assign(standard_tickets[0].pk, premium_user.email)

        assert claim.user == premium_user

    def test_tier_check_can_be_enforced(self, standard_tickets: list[Ticket], premium_user: GigpassUser) -> None:
        with pytest.raises(IneligibleTierError):
            claim_service.admin_assign(standard_tickets[0].pk, premium_user.email, enforce_tier=True)

    def test_unknown_email(self, standard_tickets: list[Ticket]) -> None:
        with pytest.raises(UserNotFoundError):
            claim_service.admin_assign(standard_tickets[0].pk, "ghost@example.com")

    def test_ticket_already_claimed(
        self, standard_tickets: list[Ticket], member_user: GigpassUser, other_member: GigpassUser
    ) -> None:
        claim_service.admin_assign(standard_tickets[0].pk, member_user.email)

        with pytest.raises(NoTicketAvailableError):
            claim_service.admin_assign(standard_tickets[0].pk, other_member.email)

    def test_member_already_has_a_ticket(self, standard_tickets: list[Ticket], member_user: GigpassUser) -> None:
        claim_service.admin_assign(standard_tickets[0].pk, member_user.email)

        with pytest.raises(AlreadyClaimedError):
            claim_service.admin_assign(standard_tickets[1].pk, member_user.email)

    def test_ticket_without_type(self, standard_tickets: list[Ticket], member_user: GigpassUser) -> None:
        Ticket.objects.filter(pk=standard_tickets[0].pk).update(ticket_type=None)

        with pytest.raises(TicketValidationError, match="Ticket type is missing"):
            claim_service.admin_assign(standard_tickets[0].pk, member_user.email)

    def test_event_at_capacity(self, event: Event, standard_tickets: list[Ticket], member_user: GigpassUser) -> None:
        Event.objects.filter(pk=event.pk).update(capacity=0)

        with pytest.raises(CapacityExceededError):
            claim_service.admin_assign(standard_tickets[0].pk, member_user.email)

        assert not Ticket.objects.get(pk=standard_tickets[0].pk).is_claimed


def test_release_user_claims(
    event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
) -> None:
    claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)

    assert claim_service.release_user_claims(member_user) == 1

    event.refresh_from_db()
    assert event.claimed_count == 0
    assert not Ticket.objects.filter(is_claimed=True).exists()


@pytest.mark.django_db(transaction=True)
class TestConcurrentClaims:
    """Claims race from separate threads, each with its own database connection."""

    def _race(self, calls: list[t.Callable[[], t.Any]]) -> list[t.Any]:
        results: list[t.Any] = [None] * len(calls)
        barrier = threading.Barrier(len(calls))

        def run(index: int, call: t.Callable[[], t.Any]) -> None:
            try:
                barrier.wait()
                results[index] = call()
            except Exception as e:
                results[index] = e
            finally:
                connection.close()

        threads = [threading.Thread(target=run, args=(i, call)) for i, call in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_no_ticket_is_handed_out_twice(
        self,
        event: Event,
        standard_type: TicketType,
        standard_tickets: list[Ticket],
        gigpass_user_factory: t.Callable[..., GigpassUser],
    ) -> None:
        users = [gigpass_user_factory() for _ in range(8)]

        results = self._race(
            [
                lambda user=user: claim_service.claim_ticket(event=event, ticket_type=standard_type, user=user)
                for user in users
            ]
        )

        claims = [r for r in results if isinstance(r, TicketClaim)]
        errors = [r for r in results if isinstance(r, Exception)]
        assert len(claims) == len(standard_tickets)
        assert len({claim.ticket_id for claim in claims}) == len(standard_tickets)
        assert all(isinstance(e, NoTicketAvailableError) for e in errors)
        event.refresh_from_db()
        assert event.claimed_count == TicketClaim.objects.filter(event=event).count() == len(standard_tickets)

    def test_capacity_is_never_exceeded(
        self,
        event: Event,
        standard_type: TicketType,
        ticket_factory: t.Callable[..., list[Ticket]],
        gigpass_user_factory: t.Callable[..., GigpassUser],
    ) -> None:
        ticket_factory(standard_type, count=6)
        Event.objects.filter(pk=event.pk).update(capacity=2)
        users = [gigpass_user_factory() for _ in range(6)]

        results = self._race(
            [
                lambda user=user: claim_service.claim_ticket(event=event, ticket_type=standard_type, user=user)
                for user in users
            ]
        )

        assert sum(isinstance(r, TicketClaim) for r in results) == 2
        assert all(isinstance(r, (TicketClaim, CapacityExceededError)) for r in results)
        event.refresh_from_db()
        assert event.claimed_count == 2
        assert Ticket.objects.filter(is_claimed=True).count() == 2

    def test_same_member_gets_one_ticket(
        self, event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
    ) -> None:
        results = self._race(
            [lambda: claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)] * 3
        )

        assert sum(isinstance(r, TicketClaim) for r in results) == 1
        assert all(isinstance(r, (TicketClaim, AlreadyClaimedError)) for r in results)
        assert TicketClaim.objects.filter(user=member_user).count() == 1
        assert Ticket.objects.filter(is_claimed=True).count() == 1


def test_unclaim_after_tier_change(
    event: Event, standard_type: TicketType, standard_tickets: list[Ticket], member_user: GigpassUser
) -> None:
    claim = claim_service.claim_ticket(event=event, ticket_type=standard_type, user=member_user)
    GigpassUser.objects.filter(pk=member_user.pk).update(membership_tier=MembershipTier.PREMIUM)

    claim_service.unclaim(claim.pk, user=member_user)

    assert not TicketClaim.objects.exists()
