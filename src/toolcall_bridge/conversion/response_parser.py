"""Detect and extract tool calls from raw backend text."""

import json
import re
import secrets
import time
from typing import Any, Dict, List, Optional

from ..models import FunctionCall, ToolCall
from ..utils.logging import LogEvent, LogRecord, debug

_TOOL_CALLS_MARKER = re.compile(r'"tool_calls"\s*:\s*\[')
_CODE_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
_NAME_ARGUMENTS_PATTERN = re.compile(
    r'\{\s*"name"\s*:\s*"([^"]+)"\s*,\s*"arguments"\s*:\s*(\{[^}]*\})\s*\}'
)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_tool_call_id() -> str:
    """Generate an id of the form ``call_<ms timestamp>_<random base36>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"call_{int(time.time() * 1000)}_{suffix}"


def _strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.match(text)
    return match.group(1) if match else text


def _load_json(text: str) -> Optional[Any]:
    try:
        return json.loads(_strip_code_fence(text.strip()))
    except (ValueError, TypeError):
        return None


def detect_function_calls(text: Any) -> bool:
    """
    Report whether the text carries a tool call request.

    True when the text is JSON with a non-empty ``tool_calls`` array, or when
    it contains the ``"tool_calls": [`` marker (truncated replies).
    """
    if not isinstance(text, str) or not text:
        return False

    parsed = _load_json(text)
    if isinstance(parsed, dict) and "tool_calls" in parsed:
        calls = parsed["tool_calls"]
        return isinstance(calls, list) and len(calls) > 0

    return _TOOL_CALLS_MARKER.search(text) is not None


def _normalize_arguments(arguments: Any) -> Optional[str]:
    if arguments is None:
        return "{}"
    if isinstance(arguments, str):
        return arguments
    try:
        return json.dumps(arguments)
    except (TypeError, ValueError):
        return None


def _normalize_tool_call(raw: Any, index: int, timestamp: int) -> Optional[ToolCall]:
    if not isinstance(raw, dict):
        return None
    function = raw.get("function")
    if not isinstance(function, dict):
        # Some backends flatten the call to {"name", "arguments"}
        function = raw if "name" in raw else None
    if function is None:
        return None

    name = function.get("name")
    if not isinstance(name, str) or not name:
        return None
    arguments = _normalize_arguments(function.get("arguments"))
    if arguments is None:
        return None

    call_id = raw.get("id")
    if not isinstance(call_id, str) or not call_id:
        call_id = f"call_{timestamp}_{index}"

    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


def _ensure_unique_ids(calls: List[ToolCall]) -> List[ToolCall]:
    seen = set()
    for call in calls:
        while call.id in seen:
            call.id = generate_tool_call_id()
        seen.add(call.id)
    return calls


def _extract_single_call_from_text(text: str, timestamp: int) -> List[ToolCall]:
    match = _NAME_ARGUMENTS_PATTERN.search(text)
    if not match:
        return []
    try:
        arguments = json.loads(match.group(2))
    except ValueError:
        return []
    return [
        ToolCall(
            id=f"call_{timestamp}_0",
            function=FunctionCall(name=match.group(1), arguments=json.dumps(arguments)),
        )
    ]


def extract_function_calls(text: Any, request_id: Optional[str] = None) -> List[ToolCall]:
    """
    Extract normalized tool calls from backend text.

    Strict JSON (optionally inside a Markdown code fence) is tried first. When
    that fails a single ``{"name": ..., "arguments": {...}}`` object is looked
    for in the surrounding text, unless the text carries a truncated
    ``tool_calls`` wrapper. Malformed input yields an empty list.
    """
    if not isinstance(text, str) or not text:
        return []

    timestamp = int(time.time() * 1000)
    parsed = _load_json(text)

    if isinstance(parsed, dict) and isinstance(parsed.get("tool_calls"), list):
        calls: List[ToolCall] = []
        for index, raw in enumerate(parsed["tool_calls"]):
            call = _normalize_tool_call(raw, index, timestamp)
            if call is not None:
                calls.append(call)
        calls = _ensure_unique_ids(calls)
        debug(
            LogRecord(
                event=LogEvent.TOOL_CALLS_EXTRACTED.value,
                message=f"Extracted {len(calls)} tool call(s) from backend reply",
                request_id=request_id,
                data={"tool_names": [c.function.name for c in calls]},
            )
        )
        return calls

    if parsed is None and _TOOL_CALLS_MARKER.search(text):
        debug(
            LogRecord(
                event=LogEvent.TOOL_CALLS_PARSE_FAILURE.value,
                message="Backend reply contains an incomplete tool_calls payload",
                request_id=request_id,
                data={"text_length": len(text)},
            )
        )
        return []

    return _extract_single_call_from_text(text, timestamp)


def serialize_tool_calls(calls: List[ToolCall]) -> str:
    """Render tool calls in the JSON wire shape the backend is asked to produce."""
    payload: Dict[str, Any] = {"tool_calls": [call.model_dump() for call in calls]}
    return json.dumps(payload)
