"""Backend collaborator interface and typed failures."""

import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class BackendErrorKind(str, enum.Enum):
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    UPSTREAM = "upstream"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"

    @property
    def is_content_failure(self) -> bool:
        """Whether the failure only means the backend produced no usable content."""
        return self is not BackendErrorKind.CONFIGURATION


class BackendError(Exception):
    """Failure raised by a chat backend, classified by kind."""

    def __init__(
        self,
        kind: BackendErrorKind,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after

    def __repr__(self) -> str:
        return f"BackendError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"

    @classmethod
    def from_status(cls, status_code: int, message: str, retry_after: Optional[float] = None) -> "BackendError":
        if status_code == 429:
            kind = BackendErrorKind.RATE_LIMITED
        elif status_code in (401, 403):
            kind = BackendErrorKind.AUTHENTICATION
        elif status_code in (408, 504):
            kind = BackendErrorKind.TIMEOUT
        else:
            kind = BackendErrorKind.UPSTREAM
        return cls(kind, message, status_code=status_code, retry_after=retry_after)


@dataclass
class BackendRequest:
    model: str
    messages: List[Dict[str, str]]
    request_id: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)


class ChatBackend(abc.ABC):
    """A text-only chat service."""

    @abc.abstractmethod
    async def chat(self, request: BackendRequest) -> str:
        """Return the backend's raw text reply or raise BackendError."""

    async def close(self) -> None:
        return None
