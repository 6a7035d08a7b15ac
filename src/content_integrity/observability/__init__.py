"""Public observability primitives: structured logging and scan log streaming."""

from content_integrity.observability.events import (
    DispatchError,
    LogEventBus,
    ScanLogEvent,
    Subscriber,
)
from content_integrity.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "DispatchError",
    "LogEventBus",
    "LoggingConfig",
    "ScanLogEvent",
    "StructuredLoggingHandle",
    "Subscriber",
    "correlation_scope",
    "get_active_logging_handle",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
