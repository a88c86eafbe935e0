"""Logging handlers and utility functions."""

import enum
import logging
import traceback
from typing import Optional

from .formatters import LogError, LogRecord


class LogEvent(enum.Enum):
    # Core request flow events
    REQUEST_RECEIVED = "request_received"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILURE = "request_failure"
    HTTP_REQUEST = "http_request"

    # Backend communication events
    BACKEND_REQUEST = "backend_request"
    BACKEND_RESPONSE = "backend_response"
    BACKEND_ERROR = "backend_error"
    BACKEND_ERROR_SUPPRESSED = "backend_error_suppressed"
    BACKEND_RATE_LIMITED = "backend_rate_limited"
    BACKEND_EMPTY_RESPONSE = "backend_empty_response"

    # Tool calling events
    TOOL_PROMPT_INJECTED = "tool_prompt_injected"
    TOOL_CALLS_DETECTED = "tool_calls_detected"
    TOOL_CALLS_EXTRACTED = "tool_calls_extracted"
    TOOL_CALLS_PARSE_FAILURE = "tool_calls_parse_failure"
    TOOL_CALLS_DISCARDED = "tool_calls_discarded"
    TOOL_CALL_FALLBACK = "tool_call_fallback"
    TOOL_FUNCTION_REGISTERED = "tool_function_registered"
    TOOL_EXECUTION_STARTED = "tool_execution_started"
    TOOL_EXECUTION_FAILED = "tool_execution_failed"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_RESULT_SERIALIZATION_FAILURE = "tool_result_serialization_failure"

    # Streaming events
    STREAM_STARTED = "stream_started"
    STREAM_COMPLETED = "stream_completed"
    STREAM_CLIENT_DISCONNECTED = "stream_client_disconnected"
    STREAM_ERROR = "stream_error"

    # Token counting events
    TOKEN_ENCODER_LOAD_FAILED = "token_encoder_load_failed"
    RESPONSE_TRUNCATED = "response_truncated"

    # Rate limit monitor events
    RATE_LIMIT_STATUS = "rate_limit_status"
    RATE_LIMIT_MONITOR_STARTED = "rate_limit_monitor_started"
    RATE_LIMIT_MONITOR_STOPPED = "rate_limit_monitor_stopped"

    # System events
    CONFIG_LOAD_FAILED = "config_load_failed"
    FASTAPI_STARTUP_COMPLETE = "fastapi_startup_complete"
    FASTAPI_SHUTDOWN = "fastapi_shutdown"


_logger: Optional[logging.Logger] = None


def init_logger(app_name: str = "toolcall-bridge") -> None:
    """Initialize the logger for this module."""
    global _logger
    _logger = logging.getLogger(app_name)


def _log(level: int, record: LogRecord, exc: Optional[BaseException] = None) -> None:
    if _logger is None:
        init_logger()

    if exc is not None:
        record.error = LogError(
            name=type(exc).__name__,
            message=str(exc),
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            args=exc.args if hasattr(exc, "args") else tuple(),
        )
        if not record.message:
            record.message = str(exc) or "An unspecified error occurred"

    _logger.log(level=level, msg=record.message, extra={"log_record": record})


def debug(record: LogRecord) -> None:
    """Log a debug message."""
    _log(logging.DEBUG, record)


def info(record: LogRecord) -> None:
    """Log an info message."""
    _log(logging.INFO, record)


def warning(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    """Log a warning message."""
    _log(logging.WARNING, record, exc=exc)


def error(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    """Log an error message."""
    _log(logging.ERROR, record, exc=exc)


def critical(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    """Log a critical message."""
    _log(logging.CRITICAL, record, exc=exc)
