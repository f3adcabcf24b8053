from .base import UserAwareController
from .media import MediaValidationController

__all__ = ["MediaValidationController", "UserAwareController"]
