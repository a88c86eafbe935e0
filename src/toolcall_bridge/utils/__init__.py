"""
Utility modules for toolcall-bridge.

This package contains logging utilities with colored console output and
JSON formatting.
"""

from .logging import (
    LogRecord, LogEvent, LogError,
    ColoredConsoleFormatter, JSONFormatter, UvicornAccessFormatter,
    init_logger, debug, info, warning, error, critical,
    create_debug_request_info
)

__all__ = [
    "LogRecord", "LogEvent", "LogError",
    "ColoredConsoleFormatter", "JSONFormatter", "UvicornAccessFormatter",
    "init_logger", "debug", "info", "warning", "error", "critical",
    "create_debug_request_info"
]
