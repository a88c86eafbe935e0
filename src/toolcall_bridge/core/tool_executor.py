"""Execute tool calls against registered implementations."""

import asyncio
import inspect
import json
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..models import ToolCall
from ..utils.logging import LogEvent, LogRecord, debug, warning
from .tool_registry import ToolRegistry

Registry = Union[ToolRegistry, Mapping[str, Callable[[Any], Any]]]


def _error_payload(message: str) -> str:
    return json.dumps({"error": message})


def _describe_exception(exc: BaseException) -> str:
    message = str(exc)
    if not message:
        return "Unknown error"
    return f"Error executing function: {message}"


def create_tool_result_message(tool_call_id: str, content: str) -> Dict[str, str]:
    return {"role": "tool", "content": content, "tool_call_id": tool_call_id}


async def execute_function_call(
    tool_call: ToolCall, registry: Registry, request_id: Optional[str] = None
) -> str:
    """
    Run one tool call and return its result as a string.

    Failures never propagate: an unknown function, unparseable arguments, an
    implementation that raises, or an unserializable result all come back as
    a JSON object with an ``error`` field. String results are returned as-is,
    anything else is JSON-encoded.
    """
    name = tool_call.function.name
    log_data = {"tool_name": name, "tool_call_id": tool_call.id}

    function = registry.get(name)
    if function is None:
        warning(
            LogRecord(
                event=LogEvent.TOOL_NOT_FOUND.value,
                message=f"Function '{name}' not found",
                request_id=request_id,
                data=log_data,
            )
        )
        return _error_payload(f"Function '{name}' not found")

    debug(
        LogRecord(
            event=LogEvent.TOOL_EXECUTION_STARTED.value,
            message=f"Executing tool '{name}'",
            request_id=request_id,
            data=log_data,
        )
    )

    try:
        arguments = json.loads(tool_call.function.arguments)
        result = function(arguments)
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        warning(
            LogRecord(
                event=LogEvent.TOOL_EXECUTION_FAILED.value,
                message=f"Tool '{name}' failed",
                request_id=request_id,
                data=log_data,
            ),
            exc=exc,
        )
        return _error_payload(_describe_exception(exc))

    if isinstance(result, str):
        return result

    try:
        return json.dumps(result)
    except (TypeError, ValueError) as exc:
        warning(
            LogRecord(
                event=LogEvent.TOOL_RESULT_SERIALIZATION_FAILURE.value,
                message=f"Result of tool '{name}' is not JSON serializable",
                request_id=request_id,
                data=log_data,
            ),
            exc=exc,
        )
        return _error_payload(_describe_exception(exc))


async def execute_tool_calls(
    tool_calls: List[ToolCall], registry: Registry, request_id: Optional[str] = None
) -> List[Dict[str, str]]:
    """Run calls concurrently and return one tool message per call."""
    results = await asyncio.gather(
        *(execute_function_call(call, registry, request_id=request_id) for call in tool_calls)
    )
    return [
        create_tool_result_message(call.id, content)
        for call, content in zip(tool_calls, results)
    ]
