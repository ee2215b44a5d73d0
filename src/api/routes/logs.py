#!/usr/bin/env python3
"""
Request Log API Endpoints

Administrative read access to the request log index: pages of logs,
newest first, optionally restricted to logs touching given indices.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi import status as http_status

from ..dependencies import get_request_log_store
from ..middleware import error_response
from ..models import ErrorCode, ErrorResponse, RequestLogsResponse
from ...core.config import Config
from ...storage.request_logs import (
    InvalidQueryParam,
    LogStoreBadRequest,
    LogStoreError,
    LogStoreTimeout,
    RequestLogStore,
)
from ...utils.logging_middleware import api_logger


router = APIRouter(tags=["logs"])

LOGS_RESPONSES = {
    200: {"model": RequestLogsResponse, "description": "Page of request logs"},
    400: {"model": ErrorResponse, "description": "Invalid pagination parameter or page window"},
    502: {"model": ErrorResponse, "description": "Backend Error"},
    504: {"model": ErrorResponse, "description": "Backend Timeout"},
}


def _split_names(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _logs_response(
    request: Request,
    store: RequestLogStore,
    from_: str,
    size: Optional[str],
    indices: List[str],
) -> Response:
    if size is None:
        size = str(getattr(
            request.app.state, "logs_default_size", Config.REQUEST_LOGS_DEFAULT_SIZE
        ))

    try:
        raw = store.get_raw_logs(from_, size, *indices)
    except InvalidQueryParam as e:
        return error_response(
            request,
            http_status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            str(e),
            details={"field": e.param, "value": str(e.value)},
        )
    except LogStoreBadRequest as e:
        return error_response(
            request, http_status.HTTP_400_BAD_REQUEST, ErrorCode.VALIDATION_ERROR, str(e)
        )
    except LogStoreTimeout as e:
        api_logger.error("Request log search timed out", error=str(e))
        return error_response(
            request, http_status.HTTP_504_GATEWAY_TIMEOUT, ErrorCode.TIMEOUT_ERROR, str(e)
        )
    except LogStoreError as e:
        api_logger.error("Request log search failed", error=str(e))
        return error_response(
            request, http_status.HTTP_502_BAD_GATEWAY, ErrorCode.BACKEND_ERROR, str(e)
        )

    return Response(content=raw, media_type="application/json")


@router.get(
    "/_logs",
    responses=LOGS_RESPONSES,
    summary="List request logs",
    description="""
    Page through recorded requests, newest first.

    `from` and `size` select the page window in the log index. When `indices`
    is given (comma separated), only logs that touched every listed index are
    kept, which is applied to the page after it is fetched: a page can hold
    fewer than `size` logs. Windows reaching past the index's
    `max_result_window` (10,000 documents by default) are rejected with 400.
    """
)
def get_logs(
    request: Request,
    from_: str = Query("0", alias="from"),
    size: Optional[str] = Query(None, description="Page size, defaults to request_logs.default_size"),
    indices: Optional[str] = Query(None, description="Comma separated index names"),
    store: RequestLogStore = Depends(get_request_log_store),
) -> Response:
    return _logs_response(request, store, from_, size, _split_names(indices))


@router.get(
    "/{index}/_logs",
    responses=LOGS_RESPONSES,
    summary="List request logs for indices",
)
def get_index_logs(
    request: Request,
    index: str,
    from_: str = Query("0", alias="from"),
    size: Optional[str] = Query(None, description="Page size, defaults to request_logs.default_size"),
    store: RequestLogStore = Depends(get_request_log_store),
) -> Response:
    """Same as ``GET /_logs`` with the indices taken from the path."""
    return _logs_response(request, store, from_, size, _split_names(index))


__all__ = ["router"]
