#!/usr/bin/env python3
"""
Arc Gateway Core REST API Server

FastAPI application wiring the referer gate and the request log store:
every request passes the referer gate, every request outside the log API
is recorded, and ``/_logs`` serves the recorded requests back.
"""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from .middleware import ErrorHandlerMiddleware, LoggingMiddleware, RequestLogMiddleware
from .routes import logs
from ..core.config import Config, get_config
from ..middleware.referers import RefererValidationMiddleware
from ..storage.request_logs import RequestLogStore, open_from_config
from ..utils.logging_middleware import api_logger, setup_logging

# Configuration
API_TITLE = "Arc Gateway API"
API_VERSION = "1.0.0"
API_DESCRIPTION = """
# Arc Gateway

- **Referer gate**: requests made with a permission credential must carry a
  `Referer` matching one of the permission's whitelisted origins
- **Request logs**: every request is recorded in an Elasticsearch index and can
  be paged through at `/_logs` and `/{index}/_logs`

## Error Handling

All errors return structured responses:

```json
{
  "error": {
    "code": "AUTHORIZATION_ERROR",
    "message": "permission doesn't have required referers",
    "details": {...},
    "trace_id": "1a2b3c4d"
  }
}
```
"""

Authenticator = Callable[[Request], Awaitable[None]]


def create_app(
    request_log_store: Optional[RequestLogStore] = None,
    config: Optional[Dict[str, Any]] = None,
    authenticator: Optional[Authenticator] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        request_log_store: Store to use; when omitted one is opened from the
            configuration at startup, and startup fails if that fails
        config: Configuration dictionary, defaults to get_config()
        authenticator: Coroutine attaching the credential (and permission)
            to the request context before the referer gate runs
    """
    config = config if config is not None else get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging_config = config.get("logging", {})
        setup_logging(logging_config.get("level", "INFO"), logging_config.get("format"))
        api_logger.info("Starting Arc Gateway API server")

        owns_store = app.state.request_log_store is None
        if owns_store:
            try:
                app.state.request_log_store = await run_in_threadpool(open_from_config, config)
            except Exception as e:
                api_logger.error("Failed to open request log store", error=str(e))
                raise

        try:
            yield
        finally:
            api_logger.info("Shutting down Arc Gateway API server")
            if owns_store:
                app.state.request_log_store.close()
                app.state.request_log_store = None

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description=API_DESCRIPTION,
        lifespan=lifespan,
    )
    app.state.request_log_store = request_log_store
    app.state.logs_default_size = config.get("request_logs", {}).get(
        "default_size", Config.REQUEST_LOGS_DEFAULT_SIZE
    )

    # Custom middleware (applied in reverse order)
    app.add_middleware(RefererValidationMiddleware)

    if authenticator is not None:
        @app.middleware("http")
        async def authenticate(request: Request, call_next):
            await authenticator(request)
            return await call_next(request)

    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)

    app.include_router(logs.router)

    @app.get("/", tags=["root"])
    async def root():
        """API root endpoint with basic information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "status": "operational",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    # Development server
    uvicorn.run(
        "src.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
