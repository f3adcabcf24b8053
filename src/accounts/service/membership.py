"""Resolves members and their membership tiers.

The claim engine never looks at user records directly; it asks this module
who the caller is and which tier they hold.
"""

from dataclasses import dataclass
from uuid import UUID

import structlog

from accounts.exceptions import UserNotFoundError
from accounts.models import GigpassUser, MembershipTier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Member:
    """A user as seen by the claim engine."""

    user_id: UUID
    tier: MembershipTier | None

    @property
    def has_membership(self) -> bool:
        return self.tier is not None


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


def resolve_member(user: GigpassUser) -> Member:
    """Return the member view of a user.

    An unknown tier value in the database is treated as no membership.
    """
    tier: MembershipTier | None = None
    if user.membership_tier:
        try:
            tier = MembershipTier(user.membership_tier)
        except ValueError:
            logger.warning("unknown_membership_tier", user_id=str(user.pk), tier=user.membership_tier)
    return Member(user_id=user.pk, tier=tier)


def resolve_user_by_email(email: str) -> GigpassUser:
    """Look up a user by email, ignoring case and surrounding whitespace.

    Raises:
        UserNotFoundError: If no user has this email.
    """
    normalized = normalize_email(email)
    if not normalized:
        raise UserNotFoundError()
    try:
        return GigpassUser.objects.get_by_email(normalized)
    except GigpassUser.DoesNotExist as e:
        raise UserNotFoundError() from e
