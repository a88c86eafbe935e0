"""Core services: tool registry, tool execution and chat orchestration."""

from ..models import validate_tools

from .tool_registry import (
    ToolFunction,
    ToolRegistry,
    BUILTIN_TOOLS,
    evaluate_expression
)

from .tool_executor import (
    execute_function_call,
    execute_tool_calls,
    create_tool_result_message
)

from .chat_service import ChatCompletionService

__all__ = [
    "validate_tools",
    "ToolFunction",
    "ToolRegistry",
    "BUILTIN_TOOLS",
    "evaluate_expression",
    "execute_function_call",
    "execute_tool_calls",
    "create_tool_result_message",
    "ChatCompletionService"
]
