"""
Request-scoped authentication context.

The authenticator that runs ahead of the referer gate decides which
credential applies to a request and, for permission credentials, which
permission record backs it. Both are stored on ``request.state``; this
module is the only place that reads or writes them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from starlette.requests import Request


CREDENTIAL_STATE_KEY = "credential"
PERMISSION_STATE_KEY = "permission"


class Credential(Enum):
    """Kind of credential an upstream authenticator attached to a request"""
    ADMIN = "admin"
    USER = "user"
    PERMISSION = "permission"


@dataclass
class Permission:
    """Permission record backing a ``Credential.PERMISSION`` request"""
    username: str
    referers: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ContextError(Exception):
    """Raised when a value expected in the request context is missing or invalid."""

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


def set_credential(request: Request, credential: Credential) -> None:
    setattr(request.state, CREDENTIAL_STATE_KEY, credential)


def set_permission(request: Request, permission: Permission) -> None:
    setattr(request.state, PERMISSION_STATE_KEY, permission)


def credential_from_request(request: Request) -> Credential:
    """
    Read the request's credential.

    Raises:
        ContextError: If no credential was attached or it is not a Credential
    """
    value = getattr(request.state, CREDENTIAL_STATE_KEY, None)
    if value is None:
        raise ContextError(CREDENTIAL_STATE_KEY, "cannot fetch credential from request context")
    if not isinstance(value, Credential):
        raise ContextError(
            CREDENTIAL_STATE_KEY,
            f"invalid type {type(value).__name__} for credential in request context",
        )
    return value


def permission_from_request(request: Request) -> Permission:
    """
    Read the permission record attached to the request.

    Raises:
        ContextError: If no permission was attached or it is not a Permission
    """
    value = getattr(request.state, PERMISSION_STATE_KEY, None)
    if value is None:
        raise ContextError(PERMISSION_STATE_KEY, "cannot fetch permission from request context")
    if not isinstance(value, Permission):
        raise ContextError(
            PERMISSION_STATE_KEY,
            f"invalid type {type(value).__name__} for permission in request context",
        )
    return value


__all__ = [
    "Credential",
    "Permission",
    "ContextError",
    "set_credential",
    "set_permission",
    "credential_from_request",
    "permission_from_request",
]
