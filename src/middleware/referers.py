"""
Referer validation middleware.

Requests made with a permission credential must come from one of the web
origins whitelisted on their permission record. Whitelist entries are globs
where ``*`` stands for any sequence of characters; a glob has to produce the
whole Referer value, not just part of it.

Requests made with any other credential are forwarded untouched.
"""

import logging
import re
from functools import lru_cache
from typing import Any, Callable, Iterable

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from ..api.middleware import error_response
from ..api.models import ErrorCode
from ..auth.context import (
    ContextError,
    Credential,
    credential_from_request,
    permission_from_request,
)

logger = logging.getLogger(__name__)

REFERER_HEADER = "Referer"


class RefererPatternError(Exception):
    """Raised when a whitelist entry cannot be turned into a matcher."""

    def __init__(self, pattern: Any, message: str):
        super().__init__(message)
        self.pattern = pattern


class RefererPattern:
    """A whitelist glob compiled to an anchored regular expression."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        translated = ".*".join(re.escape(part) for part in pattern.split("*"))
        try:
            self._regex = re.compile(translated, re.DOTALL)
        except re.error as e:
            raise RefererPatternError(pattern, f"invalid referer pattern {pattern!r}: {e}")

    def matches(self, referer: str) -> bool:
        return self._regex.fullmatch(referer) is not None

    def __repr__(self) -> str:
        return f"RefererPattern({self.pattern!r})"


@lru_cache(maxsize=1024)
def _compile_referer(pattern: str) -> RefererPattern:
    return RefererPattern(pattern)


def compile_referer(pattern: Any) -> RefererPattern:
    """Compiled matcher for a whitelist entry, shared across requests.

    Raises:
        RefererPatternError: If the entry is not a string or does not compile
    """
    if not isinstance(pattern, str):
        raise RefererPatternError(
            pattern, f"invalid referer pattern {pattern!r}: expected a string"
        )
    return _compile_referer(pattern)


def validate_referer(referer: str, patterns: Iterable[Any]) -> bool:
    """
    Check a Referer value against whitelist entries, in order.

    Evaluation stops at the first matching entry. An entry that fails to
    compile aborts the check; later entries are not tried.

    Raises:
        RefererPatternError: If an entry is evaluated and cannot be compiled
    """
    for pattern in patterns:
        if compile_referer(pattern).matches(referer):
            return True
    return False


class RefererValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject permission-credential requests from non-whitelisted origins.

    Responses:
        401: Referer header missing or empty
        403: No whitelist entry matches the Referer
        500: Credential/permission missing from the request context, or a
             whitelist entry that cannot be compiled
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            credential = credential_from_request(request)
        except ContextError as e:
            logger.error(f"referer validation: {e}")
            return error_response(
                request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, str(e)
            )

        if credential is not Credential.PERMISSION:
            return await call_next(request)

        referer = request.headers.get(REFERER_HEADER)
        if not referer:
            return error_response(
                request,
                status.HTTP_401_UNAUTHORIZED,
                ErrorCode.AUTHENTICATION_ERROR,
                f"failed to identify request domain, empty header: {REFERER_HEADER}",
            )

        try:
            permission = permission_from_request(request)
        except ContextError as e:
            logger.error(f"referer validation: {e}")
            return error_response(
                request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, str(e)
            )

        try:
            validated = validate_referer(referer, permission.referers or ())
        except RefererPatternError as e:
            logger.error(f"referer validation: {e}")
            return error_response(
                request, status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.INTERNAL_ERROR, str(e)
            )

        if not validated:
            logger.info(
                f"referer {referer!r} rejected for permission {permission.username!r}"
            )
            return error_response(
                request,
                status.HTTP_403_FORBIDDEN,
                ErrorCode.AUTHORIZATION_ERROR,
                "permission doesn't have required referers",
                details={"referer": referer},
            )

        return await call_next(request)


__all__ = [
    "RefererPattern",
    "RefererPatternError",
    "RefererValidationMiddleware",
    "compile_referer",
    "validate_referer",
]
