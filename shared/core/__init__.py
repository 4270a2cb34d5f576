"""Shared core utilities for microservices.

Provides common health check and logging functionality.
"""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    request_context,
    generate_request_id,
    LoggerAdapter,
    CallTimer,
    REQUEST_ID_HEADER,
    CORRELATION_ID_HEADER,
)

__all__ = [
    # Health checks
    "ServiceHealth",
    "HealthStatus",
    # Logging
    "setup_logging",
    "get_logger",
    "request_context",
    "generate_request_id",
    "LoggerAdapter",
    "CallTimer",
    "REQUEST_ID_HEADER",
    "CORRELATION_ID_HEADER",
]
