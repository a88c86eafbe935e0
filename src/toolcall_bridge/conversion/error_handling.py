"""Error handling utilities for OpenAI-style responses."""

import json
from typing import Optional, Tuple

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..backend.base import BackendError, BackendErrorKind
from ..models import OpenAIErrorDetail, OpenAIErrorResponse, OpenAIErrorType
from ..utils.logging import LogEvent, LogRecord, error, warning

_BACKEND_ERROR_MAP = {
    BackendErrorKind.RATE_LIMITED: (OpenAIErrorType.RATE_LIMIT, 429),
    BackendErrorKind.TIMEOUT: (OpenAIErrorType.API_ERROR, 504),
    BackendErrorKind.TRANSPORT: (OpenAIErrorType.API_ERROR, 502),
    BackendErrorKind.UPSTREAM: (OpenAIErrorType.API_ERROR, 502),
    BackendErrorKind.AUTHENTICATION: (OpenAIErrorType.API_ERROR, 502),
    BackendErrorKind.CONFIGURATION: (OpenAIErrorType.SERVER_ERROR, 500),
}


def format_validation_error(exc: Exception) -> str:
    """Flatten pydantic error entries to a single readable message."""
    errors = exc.errors() if hasattr(exc, "errors") else []
    if not errors:
        return str(exc)
    parts = []
    for err in errors:
        location = ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body")
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def get_openai_error_details_from_exc(exc: Exception) -> Tuple[OpenAIErrorType, str, int, Optional[str]]:
    """Maps caught exceptions to OpenAI error type, message, status code and error code."""
    if isinstance(exc, BackendError):
        error_type, status_code = _BACKEND_ERROR_MAP[exc.kind]
        return error_type, f"Backend error: {exc.message}", status_code, exc.kind.value

    if isinstance(exc, (RequestValidationError, ValidationError)):
        return OpenAIErrorType.INVALID_REQUEST, format_validation_error(exc), 400, None

    if isinstance(exc, json.JSONDecodeError):
        return OpenAIErrorType.INVALID_REQUEST, f"Invalid JSON body: {exc.msg}", 400, None

    return OpenAIErrorType.SERVER_ERROR, str(exc) or "Internal server error", 500, None


def build_openai_error_response(
    error_type: OpenAIErrorType,
    message: str,
    status_code: int,
    code: Optional[str] = None,
    param: Optional[str] = None,
) -> JSONResponse:
    """Creates a JSONResponse with an OpenAI-formatted error."""
    error_response = OpenAIErrorResponse(
        error=OpenAIErrorDetail(message=message, type=error_type, param=param, code=code)
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


def format_error_sse_event(error_type: OpenAIErrorType, message: str, code: Optional[str] = None) -> str:
    """Formats an error as an SSE frame for a stream that is already open."""
    error_response = OpenAIErrorResponse(
        error=OpenAIErrorDetail(message=message, type=error_type, code=code)
    )
    return f"data: {json.dumps(error_response.model_dump(mode='json'))}\n\n"


def log_and_return_error_response(exc: Exception, request_id: Optional[str] = None) -> JSONResponse:
    """Log a failed request and return the matching OpenAI error response."""
    error_type, message, status_code, code = get_openai_error_details_from_exc(exc)
    log = warning if status_code < 500 else error
    log(
        LogRecord(
            event=LogEvent.REQUEST_FAILURE.value,
            message=f"Request failed: {message}",
            request_id=request_id,
            data={"status_code": status_code, "error_type": error_type.value},
        ),
        exc=exc,
    )
    return build_openai_error_response(error_type, message, status_code, code=code)
