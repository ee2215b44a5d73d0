#!/usr/bin/env python3
"""
API Dependencies

Dependency injection functions for FastAPI endpoints.
The request log store is created by the application factory and kept on
``app.state``, so every app instance (and every test) owns its own store.
"""

from fastapi import Request

from ..storage.request_logs import RequestLogStore


def get_request_log_store(request: Request) -> RequestLogStore:
    """Get the request log store bound to the serving application."""
    store = getattr(request.app.state, "request_log_store", None)
    if store is None:
        raise RuntimeError("Request log store not initialized")
    return store
