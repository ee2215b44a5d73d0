#!/usr/bin/env python3
"""
Structured logging with trace ID support for the arc gateway core.

Emits one JSON object per log line, tagged with the trace ID of the request
being served, and mirrors every entry to the stdlib logger.
"""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


# Context variables for request tracing
trace_id_var: ContextVar[str] = ContextVar('trace_id', default='')


class LogLevel(str, Enum):
    """Logging levels for structured output."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogEntry:
    """Structured log entry format."""
    timestamp: float
    level: str
    message: str
    logger_name: str
    trace_id: str
    duration_ms: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None}


class StructuredLogger:
    """
    Logger with structured JSON output and trace ID support.

    Header values such as ``authorization`` or ``cookie`` can end up in the
    metadata of request logs, so keys matching a sensitive pattern are masked
    before anything is written.
    """

    def __init__(self, name: str, enable_console: bool = True, redact: bool = True):
        self.name = name
        self.enable_console = enable_console
        self.redact = redact
        self.stdlib_logger = logging.getLogger(name)
        self.sensitive_patterns = [
            'password', 'secret', 'token', 'authorization', 'cookie', 'api_key'
        ]

    def _redact(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not self.redact:
            return data

        redacted = {}
        for key, value in data.items():
            if any(pattern in str(key).lower() for pattern in self.sensitive_patterns):
                redacted[key] = '***REDACTED***'
            elif isinstance(value, dict):
                redacted[key] = self._redact(value)
            else:
                redacted[key] = value
        return redacted

    def _emit_log(self, level: LogLevel, message: str, **kwargs):
        provided_trace_id = kwargs.pop('trace_id', None)
        trace_id = provided_trace_id or trace_id_var.get() or str(uuid.uuid4())[:8]
        duration_ms = kwargs.pop('duration_ms', None)

        log_entry = LogEntry(
            timestamp=time.time(),
            level=level.value,
            message=message,
            logger_name=self.name,
            trace_id=trace_id,
            duration_ms=duration_ms,
            metadata=self._redact(kwargs) if kwargs else None,
        )

        if self.enable_console:
            print(json.dumps(log_entry.to_dict(), default=str))

        self.stdlib_logger.log(getattr(logging, level.value), message)

    def debug(self, message: str, **kwargs):
        self._emit_log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._emit_log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._emit_log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._emit_log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._emit_log(LogLevel.CRITICAL, message, **kwargs)


@contextmanager
def trace_context(trace_id: Optional[str] = None):
    """
    Context manager for setting trace ID for a request.

    Args:
        trace_id: Optional trace ID (will generate if not provided)
    """
    if trace_id is None:
        trace_id = str(uuid.uuid4())[:8]

    token = trace_id_var.set(trace_id)
    try:
        yield trace_id
    finally:
        trace_id_var.reset(token)


def get_current_trace_id() -> str:
    """Get the current trace ID from context."""
    return trace_id_var.get() or str(uuid.uuid4())[:8]


# Global logger instances for common components
api_logger = StructuredLogger("arc.api")


def setup_logging(level: str = "INFO", log_format: Optional[str] = None):
    """
    Set up global logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Optional stdlib format string
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=log_format or '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # The client logs every HTTP round trip at INFO
    logging.getLogger("elastic_transport.transport").setLevel(logging.WARNING)
