import typing as t

from django.contrib.auth.models import AnonymousUser
from ninja_extra import ControllerBase

from accounts.models import GigpassUser


class UserAwareController(ControllerBase):
    def maybe_user(self) -> GigpassUser | AnonymousUser:
        """Get the user for this request."""
        return t.cast(GigpassUser | AnonymousUser, self.context.request.user)  # type: ignore[union-attr]

    def user(self) -> GigpassUser:
        """Get the user for this request."""
        return t.cast(GigpassUser, self.context.request.user)  # type: ignore[union-attr]
