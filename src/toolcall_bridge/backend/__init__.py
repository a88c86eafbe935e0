"""Backend boundary: the text-only chat service behind the API."""

from .base import (
    BackendError,
    BackendErrorKind,
    BackendRequest,
    ChatBackend
)

from .rate_limit import (
    RateLimitInfo,
    RateLimitMonitor,
    RateLimitSource
)

from .http_client import HttpChatBackend

__all__ = [
    "BackendError",
    "BackendErrorKind",
    "BackendRequest",
    "ChatBackend",
    "RateLimitInfo",
    "RateLimitMonitor",
    "RateLimitSource",
    "HttpChatBackend"
]
