"""Common middleware for Gigpass."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
