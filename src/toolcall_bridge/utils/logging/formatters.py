"""Custom logging formatters."""

import dataclasses
import json
import logging
import re
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


@dataclasses.dataclass
class LogError:
    name: str
    message: str
    stack_trace: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None


@dataclasses.dataclass
class LogRecord:
    event: str
    message: str
    request_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[LogError] = None


_SENSITIVE_KEYS = {"authorization", "x-api-key", "api_key", "api-key", "cookie", "password", "secret", "token"}

_SENSITIVE_PATTERNS = [
    (re.compile(r"(sk-[a-zA-Z0-9-_]{20,})"), lambda m: m.group(1)[:10] + "*" * 10),
    (re.compile(r"(Bearer\s+[a-zA-Z0-9-_\.]{20,})", re.IGNORECASE), lambda m: m.group(1)[:15] + "*" * 10),
    (re.compile(r'("(?:password|secret|token|key|auth)"\s*:\s*")([^"]+)', re.IGNORECASE), lambda m: m.group(1) + "*" * 8),
]


def mask_sensitive_data(data: Any) -> Any:
    """Recursively mask sensitive values in dictionaries, lists and strings."""
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS and value:
                masked[key] = "*" * 10
            else:
                masked[key] = mask_sensitive_data(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    if isinstance(data, str):
        return mask_sensitive_string(data)
    return data


def mask_sensitive_string(text: str) -> str:
    """Mask API keys and bearer tokens embedded in free text."""
    masked_text = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        masked_text = pattern.sub(replacement, masked_text)
    return masked_text


def create_debug_request_info(url: str, headers: Dict[str, str], data: Dict[str, Any]) -> Dict[str, Any]:
    """Create a debug information dict with masked sensitive data for request logging."""
    return {
        "url": url,
        "headers": mask_sensitive_data(headers),
        "request_body": mask_sensitive_data(data),
    }


def _error_dict_from_exc_info(exc_info) -> Dict[str, Any]:
    exc_type, exc_value, exc_tb = exc_info
    return {
        "name": exc_type.__name__ if exc_type else "UnknownError",
        "message": str(exc_value),
        "stack_trace": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        "args": list(exc_value.args) if exc_value is not None else [],
    }


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter with color support and simplified output for CLI."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[95m",
    }
    RESET = "\033[0m"

    # Fields worth surfacing on the console for failures
    ESSENTIAL_FIELDS = ("status_code", "error_kind", "tool_name", "tool_call_id", "model")

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        log_dict = self._get_simplified_log_dict(record)
        formatted_json = json.dumps(log_dict, ensure_ascii=False, default=str)

        use_colors = self.use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        if use_colors:
            color = self.COLORS.get(record.levelname, "")
            return f"{color}{formatted_json}{self.RESET}"
        return formatted_json

    def _get_simplified_log_dict(self, record: logging.LogRecord) -> dict:
        log_payload = getattr(record, "log_record", None)

        if not isinstance(log_payload, LogRecord):
            return {
                "time": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                "message": record.getMessage(),
            }

        message = log_payload.message
        if len(message) > 200:
            message = message[:200] + "..."

        simplified = {
            "time": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
            "level": record.levelname,
            "event": log_payload.event,
            "message": message,
        }
        if log_payload.request_id:
            simplified["req_id"] = log_payload.request_id[:8]

        if log_payload.error and record.levelno >= logging.WARNING:
            simplified["error"] = log_payload.error.name
            if log_payload.error.message != log_payload.message:
                simplified["error_msg"] = log_payload.error.message[:100]

        if log_payload.data and record.levelno >= logging.WARNING:
            for field in self.ESSENTIAL_FIELDS:
                if field in log_payload.data:
                    simplified[field] = log_payload.data[field]

        return simplified


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        header = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        log_payload = getattr(record, "log_record", None)
        if isinstance(log_payload, LogRecord):
            header["detail"] = dataclasses.asdict(log_payload)
        else:
            header["message"] = record.getMessage()
            if record.exc_info:
                header["error"] = _error_dict_from_exc_info(record.exc_info)
        return json.dumps(header, ensure_ascii=False, default=str)


class UvicornAccessFormatter(logging.Formatter):
    """Formatter for uvicorn access logs, dimmed to sit behind application logs."""

    INFO_GRAY = "\033[38;5;244m"
    RESET = "\033[0m"

    def __init__(self):
        super().__init__(fmt="%(levelname)s:     %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        formatted_message = super().format(record)
        if hasattr(sys.stdout, "isatty") and sys.stdout.isatty():
            return f"{self.INFO_GRAY}{formatted_message}{self.RESET}"
        return formatted_message
