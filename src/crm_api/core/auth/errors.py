"""Authentication and authorization exceptions."""

from __future__ import annotations


class AuthenticationError(Exception):
    """Raised when the request carries no usable principal."""


class PermissionDeniedError(Exception):
    """Raised when a principal lacks ``action`` on ``resource``."""

    def __init__(self, *, resource: str, action: str) -> None:
        super().__init__(f"Missing permission: {resource}:{action}")
        self.resource = resource
        self.action = action


__all__ = ["AuthenticationError", "PermissionDeniedError"]
