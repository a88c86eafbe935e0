"""Error models for API responses."""

import enum
from typing import Optional, Union

from pydantic import BaseModel


class OpenAIErrorType(str, enum.Enum):
    INVALID_REQUEST = "invalid_request_error"
    NOT_FOUND = "not_found_error"
    RATE_LIMIT = "rate_limit_error"
    API_ERROR = "api_error"
    SERVER_ERROR = "server_error"


class OpenAIErrorDetail(BaseModel):
    message: str
    type: OpenAIErrorType
    param: Optional[str] = None
    code: Optional[Union[str, int]] = None


class OpenAIErrorResponse(BaseModel):
    error: OpenAIErrorDetail
