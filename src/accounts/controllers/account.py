"""This module contains the controllers for the accounts app."""

import typing as t

from ninja_extra import ControllerBase, api_controller, route

from accounts.models import GigpassUser
from accounts.schema import GigpassUserSchema
from common.authentication import ContextJWTAuth
from common.throttling import UserDefaultThrottle


@api_controller("/account", tags=["Account"], auth=ContextJWTAuth(), throttle=UserDefaultThrottle())
class AccountController(ControllerBase):
    @route.get("/me", response=GigpassUserSchema, url_name="me")
    def me(self) -> GigpassUser:
        """Retrieve the authenticated user's profile and membership tier."""
        return t.cast(GigpassUser, self.context.request.user)  # type: ignore[union-attr]
