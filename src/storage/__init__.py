"""Storage module for the request log index."""

from .request_logs import (
    InvalidQueryParam,
    LogStoreBadRequest,
    LogStoreError,
    LogStoreTimeout,
    RequestLogStore,
    open_from_config,
)

__all__ = [
    "RequestLogStore",
    "LogStoreError",
    "LogStoreTimeout",
    "LogStoreBadRequest",
    "InvalidQueryParam",
    "open_from_config",
]
