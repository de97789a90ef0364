"""Principal resolution and permission enforcement for HTTP requests."""

from .errors import AuthenticationError, PermissionDeniedError
from .principal import AuthenticatedPrincipal, effective_permissions, resolve_principal

__all__ = [
    "AuthenticatedPrincipal",
    "AuthenticationError",
    "PermissionDeniedError",
    "effective_permissions",
    "resolve_principal",
]
