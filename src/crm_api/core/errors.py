"""Domain error taxonomy and result records shared across CRM services."""

from __future__ import annotations

from dataclasses import dataclass


class DomainError(ValueError):
    """Base class for domain-level failures."""


class ValidationError(DomainError):
    """Raised when a role or permission payload violates its shape rules."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ImmutableEntityError(DomainError):
    """Raised when a system role or core catalog entry would be mutated."""


class NotFoundError(DomainError):
    """Raised when a record cannot be located."""


class ConflictError(DomainError):
    """Raised when an operation would violate a uniqueness constraint."""


class SessionExpiredError(DomainError):
    """Describes a forced sign-out.

    The session monitor never raises this to application code; it is handed
    to the sign-out path so the reason can travel with it.
    """

    def __init__(self, reason: str = "timeout") -> None:
        super().__init__(f"Session ended: {reason}")
        self.reason = reason


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful outcome carrying ``value``."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err[E: DomainError]:
    """Rejected outcome carrying the domain ``error``."""

    error: E

    @property
    def ok(self) -> bool:
        return False


type Result[T, E: DomainError] = Ok[T] | Err[E]


__all__ = [
    "ConflictError",
    "DomainError",
    "Err",
    "ImmutableEntityError",
    "NotFoundError",
    "Ok",
    "Result",
    "SessionExpiredError",
    "ValidationError",
]
