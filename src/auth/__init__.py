"""Request-scoped credential and permission context."""

from .context import (
    ContextError,
    Credential,
    Permission,
    credential_from_request,
    permission_from_request,
    set_credential,
    set_permission,
)

__all__ = [
    "Credential",
    "Permission",
    "ContextError",
    "set_credential",
    "set_permission",
    "credential_from_request",
    "permission_from_request",
]
