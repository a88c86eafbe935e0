"""Logging functionality and custom formatters."""

from .formatters import (
    LogError,
    LogRecord,
    ColoredConsoleFormatter,
    JSONFormatter,
    UvicornAccessFormatter,
    mask_sensitive_data,
    mask_sensitive_string,
    create_debug_request_info
)

from .handlers import (
    LogEvent,
    init_logger,
    debug,
    info,
    warning,
    error,
    critical
)

__all__ = [
    "LogError",
    "LogRecord",
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "UvicornAccessFormatter",
    "LogEvent",
    "init_logger",
    "debug",
    "info",
    "warning",
    "error",
    "critical",
    "mask_sensitive_data",
    "mask_sensitive_string",
    "create_debug_request_info"
]
