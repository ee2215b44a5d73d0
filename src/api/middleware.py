#!/usr/bin/env python3
"""
API Middleware Components

Custom middleware for error handling, request logging with trace IDs,
and recording one request log document per proxied request.
"""

import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware

from .models import ErrorCode, ErrorDetail, ErrorResponse
from ..auth.context import ContextError
from ..storage.request_logs import (
    InvalidQueryParam,
    LogStoreBadRequest,
    LogStoreError,
    LogStoreTimeout,
    RequestLogStore,
)
from ..utils.logging_middleware import api_logger, trace_context


# Headers that are never persisted in a request log
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})

# Underscore-prefixed endpoint segment -> log category
CATEGORY_BY_ENDPOINT = {
    "_search": "search",
    "_msearch": "search",
    "_count": "search",
    "_doc": "docs",
    "_create": "docs",
    "_update": "docs",
    "_bulk": "docs",
    "_mget": "docs",
    "_mapping": "indices",
    "_settings": "indices",
    "_cat": "cat",
    "_cluster": "cluster",
    "_nodes": "cluster",
}


def error_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Build a JSON response carrying the standard error envelope."""
    trace_id = getattr(request.state, 'trace_id', None) or str(uuid.uuid4())[:8]
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details, trace_id=trace_id)
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers={"X-Trace-ID": trace_id},
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging middleware with structured logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = str(uuid.uuid4())[:8]
        request.state.trace_id = trace_id

        start_time = time.time()

        with trace_context(trace_id):
            api_logger.info(
                "API request started",
                method=request.method,
                url=str(request.url),
                client_ip=request.client.host if request.client else "unknown",
                trace_id=trace_id
            )

            try:
                response = await call_next(request)
            except Exception as e:
                api_logger.error(
                    "API request failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=(time.time() - start_time) * 1000,
                    trace_id=trace_id,
                    traceback=traceback.format_exc()
                )
                raise

            api_logger.info(
                "API request completed",
                status_code=response.status_code,
                duration_ms=(time.time() - start_time) * 1000,
                trace_id=trace_id
            )

        response.headers["X-Trace-ID"] = trace_id
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Global error handling middleware with structured error responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            error_code, status_code, message = self._classify_error(e)

            api_logger.error(
                f"API error: {error_code.value}",
                error_message=message,
                error_type=type(e).__name__,
                status_code=status_code,
                trace_id=getattr(request.state, 'trace_id', None),
            )

            return error_response(
                request, status_code, error_code, message,
                details={"error_type": type(e).__name__},
            )

    def _classify_error(self, error: Exception) -> tuple[ErrorCode, int, str]:
        if isinstance(error, InvalidQueryParam):
            return ErrorCode.VALIDATION_ERROR, status.HTTP_400_BAD_REQUEST, str(error)

        if isinstance(error, LogStoreBadRequest):
            return ErrorCode.VALIDATION_ERROR, status.HTTP_400_BAD_REQUEST, str(error)

        if isinstance(error, ContextError):
            return ErrorCode.INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR, str(error)

        # Timeouts before backend errors: LogStoreTimeout is a LogStoreError
        if isinstance(error, (LogStoreTimeout, TimeoutError)):
            return ErrorCode.TIMEOUT_ERROR, status.HTTP_504_GATEWAY_TIMEOUT, "Request timeout"

        if isinstance(error, LogStoreError):
            return ErrorCode.BACKEND_ERROR, status.HTTP_502_BAD_GATEWAY, "Backend service error"

        return (
            ErrorCode.INTERNAL_ERROR,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
        )


def path_indices(path: str) -> List[str]:
    """Resource names addressed by a request path, e.g. ``/books,films/_search``."""
    first = path.strip("/").split("/", 1)[0]
    if not first or first.startswith("_"):
        return []
    return [name.strip() for name in first.split(",") if name.strip()]


def path_category(path: str) -> str:
    for segment in path.strip("/").split("/"):
        if segment in CATEGORY_BY_ENDPOINT:
            return CATEGORY_BY_ENDPOINT[segment]
    return "other"


def _safe_headers(headers: Iterable) -> Dict[str, str]:
    return {
        key: value
        for key, value in headers
        if key.lower() not in SENSITIVE_HEADERS
    }


def build_log_record(request: Request, response: Response) -> Dict[str, Any]:
    """Request log document describing one request and its response."""
    return {
        "indices": path_indices(request.url.path),
        "category": path_category(request.url.path),
        "request": {
            "uri": str(request.url),
            "method": request.method,
            "headers": _safe_headers(request.headers.items()),
        },
        "response": {
            "code": response.status_code,
            "status": "success" if response.status_code < 400 else "failure",
            "headers": _safe_headers(response.headers.items()),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class RequestLogMiddleware(BaseHTTPMiddleware):
    """
    Record every request in the request log index.

    The document is written by a background task once the response has been
    sent, so a slow or failing log index never delays or fails the request.
    Requests to the log read API itself are not recorded. Without an explicit
    store the one on ``app.state.request_log_store`` is used.
    """

    def __init__(
        self, app, store: Optional[RequestLogStore] = None, skip_endpoint: str = "_logs"
    ):
        super().__init__(app)
        self.store = store
        self.skip_endpoint = skip_endpoint

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if self.skip_endpoint in request.url.path.strip("/").split("/"):
            return response

        store = self.store if self.store is not None else getattr(
            request.app.state, "request_log_store", None
        )
        if store is None:
            return response

        task = BackgroundTask(store.index_record, build_log_record(request, response))
        if response.background is None:
            response.background = task
        else:
            tasks = BackgroundTasks()
            tasks.add_task(response.background)
            tasks.add_task(task)
            response.background = tasks

        return response
