"""
Tests for compiling tool definitions into backend prompt text.
"""

import json

from toolcall_bridge.conversion import (
    generate_tool_system_prompt,
    prepare_messages_for_backend,
    should_use_function_calling,
)
from toolcall_bridge.models import ChatMessage, ToolChoiceFunction, ToolDefinition

from conftest import CALCULATE_TOOL, WEATHER_TOOL


def _tools(*raw):
    return [ToolDefinition.model_validate(t) for t in raw]


def test_prompt_lists_tools_and_contract():
    prompt = generate_tool_system_prompt(_tools(WEATHER_TOOL))

    assert "get_weather" in prompt
    assert "Get current weather for a location" in prompt
    assert "tool_calls" in prompt
    assert "location (string, required) - City name" in prompt
    assert "unit (string, optional)" in prompt


def test_prompt_directive_for_required():
    prompt = generate_tool_system_prompt(_tools(CALCULATE_TOOL), "required")
    assert "You MUST call at least one function." in prompt


def test_prompt_directive_for_none():
    prompt = generate_tool_system_prompt(_tools(CALCULATE_TOOL), "none")
    assert "Do NOT call any functions." in prompt


def test_prompt_directive_for_specific_function():
    choice = ToolChoiceFunction.model_validate({"type": "function", "function": {"name": "get_weather"}})
    prompt = generate_tool_system_prompt(_tools(WEATHER_TOOL), choice)
    assert 'You MUST call the function "get_weather"' in prompt


def test_prompt_has_no_directive_for_auto():
    prompt = generate_tool_system_prompt(_tools(CALCULATE_TOOL), "auto")
    assert "MUST call" not in prompt
    assert "Do NOT call" not in prompt


def test_should_use_function_calling():
    tools = _tools(CALCULATE_TOOL)
    assert should_use_function_calling(tools, None)
    assert should_use_function_calling(tools, "required")
    assert not should_use_function_calling(tools, "none")
    assert not should_use_function_calling([], "auto")
    assert not should_use_function_calling(None, None)


def test_prepare_inserts_system_prompt_when_missing():
    messages = [ChatMessage(role="user", content="Calculate 2 + 2")]
    prepared = prepare_messages_for_backend(messages, _tools(CALCULATE_TOOL), "auto")

    assert prepared[0]["role"] == "system"
    assert "calculate" in prepared[0]["content"]
    assert prepared[1] == {"role": "user", "content": "Calculate 2 + 2"}


def test_prepare_appends_to_existing_system_message():
    messages = [
        ChatMessage(role="system", content="You are terse."),
        ChatMessage(role="user", content="hi"),
    ]
    prepared = prepare_messages_for_backend(messages, _tools(CALCULATE_TOOL), None)

    assert len(prepared) == 2
    assert prepared[0]["content"].startswith("You are terse.\n\n")
    assert "You have access to the following functions" in prepared[0]["content"]


def test_prepare_skips_tool_prompt_for_none():
    messages = [ChatMessage(role="user", content="hi")]
    prepared = prepare_messages_for_backend(messages, _tools(CALCULATE_TOOL), "none")
    assert prepared == [{"role": "user", "content": "hi"}]


def test_prepare_renders_tool_history_as_plain_text():
    messages = [
        ChatMessage(role="user", content="What is 2 + 2?"),
        ChatMessage(
            role="assistant",
            content=None,
            tool_calls=[{
                "id": "call_1",
                "type": "function",
                "function": {"name": "calculate", "arguments": {"expression": "2 + 2"}},
            }],
        ),
        ChatMessage(role="tool", tool_call_id="call_1", content='{"result": 4}'),
    ]
    prepared = prepare_messages_for_backend(messages)

    assistant = json.loads(prepared[1]["content"])
    assert assistant["tool_calls"][0]["id"] == "call_1"
    assert assistant["tool_calls"][0]["function"]["arguments"] == '{"expression": "2 + 2"}'
    assert prepared[2] == {"role": "user", "content": 'Tool result for call call_1: {"result": 4}'}


def test_prepare_flattens_content_parts():
    messages = [ChatMessage(role="user", content=[
        {"type": "text", "text": "first"},
        {"type": "image_url", "image_url": {"url": "http://x"}},
        {"type": "text", "text": "second"},
    ])]
    prepared = prepare_messages_for_backend(messages)
    assert prepared[0]["content"] == "first\nsecond"
