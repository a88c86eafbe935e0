"""Compile tool definitions into backend prompt text."""

import json
from typing import Any, Dict, List, Optional

from ..models import ChatMessage, ToolChoice, ToolChoiceFunction, ToolDefinition
from ..utils.logging import LogEvent, LogRecord, debug

TOOL_CALL_FORMAT = """{
  "tool_calls": [
    {
      "id": "call_<unique_id>",
      "type": "function",
      "function": {
        "name": "<function_name>",
        "arguments": "<JSON-encoded arguments>"
      }
    }
  ]
}"""


def _format_parameters(parameters: Optional[Dict[str, Any]]) -> List[str]:
    if not parameters:
        return []
    properties = parameters.get("properties") or {}
    required = set(parameters.get("required") or [])
    lines = []
    for name, schema in properties.items():
        schema = schema if isinstance(schema, dict) else {}
        param_type = schema.get("type", "any")
        if isinstance(param_type, list):
            param_type = "|".join(str(t) for t in param_type)
        requirement = "required" if name in required else "optional"
        line = f"  - {name} ({param_type}, {requirement})"
        if schema.get("description"):
            line += f" - {schema['description']}"
        if schema.get("enum"):
            line += f" [one of: {', '.join(str(v) for v in schema['enum'])}]"
        lines.append(line)
    return lines


def _tool_choice_directive(tool_choice: Optional[ToolChoice]) -> Optional[str]:
    if tool_choice == "required":
        return "You MUST call at least one function."
    if tool_choice == "none":
        return "Do NOT call any functions. Answer the user directly."
    if isinstance(tool_choice, ToolChoiceFunction):
        return f'You MUST call the function "{tool_choice.function.name}".'
    return None


def generate_tool_system_prompt(
    tools: List[ToolDefinition], tool_choice: Optional[ToolChoice] = None
) -> str:
    """
    Render the available tools and the reply contract as system prompt text.

    Each tool is listed with its description and parameters, followed by the
    exact JSON shape the backend must answer with to request a call and a
    directive derived from ``tool_choice``.
    """
    sections = ["You have access to the following functions:", ""]

    for tool in tools:
        function = tool.function
        sections.append(f"Function: {function.name}")
        if function.description:
            sections.append(f"Description: {function.description}")
        param_lines = _format_parameters(function.parameters)
        if param_lines:
            sections.append("Parameters:")
            sections.extend(param_lines)
        else:
            sections.append("Parameters: none")
        sections.append("")

    sections.extend([
        "To call one or more functions, respond with ONLY a JSON object in this exact format:",
        TOOL_CALL_FORMAT,
        "",
        "The \"arguments\" value must be a JSON-encoded string matching the function parameters.",
        "Do not wrap the JSON in any other text when calling functions.",
        "If no function call is needed, respond normally with plain text.",
    ])

    directive = _tool_choice_directive(tool_choice)
    if directive:
        sections.extend(["", directive])

    return "\n".join(sections)


def should_use_function_calling(
    tools: Optional[List[ToolDefinition]], tool_choice: Optional[ToolChoice]
) -> bool:
    return bool(tools) and tool_choice != "none"


def _render_assistant_tool_calls(tool_calls: List[Dict[str, Any]]) -> str:
    rendered = []
    for call in tool_calls:
        function = call.get("function") or {}
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        rendered.append({
            "id": call.get("id"),
            "type": "function",
            "function": {"name": function.get("name"), "arguments": arguments},
        })
    return json.dumps({"tool_calls": rendered})


def prepare_messages_for_backend(
    messages: List[ChatMessage],
    tools: Optional[List[ToolDefinition]] = None,
    tool_choice: Optional[ToolChoice] = None,
    request_id: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Flatten chat messages to plain role/content pairs, injecting the tool prompt when active."""
    prepared: List[Dict[str, str]] = []

    for msg in messages:
        if msg.role == "assistant" and msg.tool_calls:
            prepared.append({"role": "assistant", "content": _render_assistant_tool_calls(msg.tool_calls)})
        elif msg.role == "tool":
            prepared.append({
                "role": "user",
                "content": f"Tool result for call {msg.tool_call_id}: {msg.text_content()}",
            })
        else:
            prepared.append({"role": msg.role, "content": msg.text_content()})

    if not should_use_function_calling(tools, tool_choice):
        return prepared

    tool_prompt = generate_tool_system_prompt(tools, tool_choice)
    for entry in prepared:
        if entry["role"] == "system":
            entry["content"] = f"{entry['content']}\n\n{tool_prompt}" if entry["content"] else tool_prompt
            break
    else:
        prepared.insert(0, {"role": "system", "content": tool_prompt})

    debug(
        LogRecord(
            event=LogEvent.TOOL_PROMPT_INJECTED.value,
            message=f"Injected tool prompt for {len(tools)} tool(s)",
            request_id=request_id,
            data={"tool_names": [t.function.name for t in tools], "prompt_length": len(tool_prompt)},
        )
    )
    return prepared
