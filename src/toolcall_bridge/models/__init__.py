"""Pydantic models for API requests and responses."""

from .tools import (
    FunctionDefinition,
    ToolDefinition,
    ToolChoiceFunctionName,
    ToolChoiceFunction,
    ToolChoice,
    FunctionCall,
    ToolCall,
    ToolValidationResult,
    is_mandatory_tool_choice,
    forced_function_name,
    validate_tools
)

from .messages import ChatMessage

from .requests import ChatCompletionRequest

from .responses import (
    FinishReason,
    Usage,
    AssistantMessage,
    Choice,
    ChatCompletion,
    ChunkToolCall,
    ChunkDelta,
    ChunkChoice,
    ChatCompletionChunk,
    ModelInfo,
    ModelList
)

from .errors import (
    OpenAIErrorType,
    OpenAIErrorDetail,
    OpenAIErrorResponse
)

__all__ = [
    # Tools
    "FunctionDefinition",
    "ToolDefinition",
    "ToolChoiceFunctionName",
    "ToolChoiceFunction",
    "ToolChoice",
    "FunctionCall",
    "ToolCall",
    "ToolValidationResult",
    "is_mandatory_tool_choice",
    "forced_function_name",
    "validate_tools",

    # Messages
    "ChatMessage",

    # Requests
    "ChatCompletionRequest",

    # Responses
    "FinishReason",
    "Usage",
    "AssistantMessage",
    "Choice",
    "ChatCompletion",
    "ChunkToolCall",
    "ChunkDelta",
    "ChunkChoice",
    "ChatCompletionChunk",
    "ModelInfo",
    "ModelList",

    # Errors
    "OpenAIErrorType",
    "OpenAIErrorDetail",
    "OpenAIErrorResponse"
]
