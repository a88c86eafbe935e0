"""
Tests for tool execution and the built-in tool implementations.
"""

import asyncio
import json

import pytest

from toolcall_bridge.core import ToolRegistry, execute_function_call, execute_tool_calls
from toolcall_bridge.core.tool_registry import calculate, evaluate_expression, get_current_time, get_weather
from toolcall_bridge.models import FunctionCall, ToolCall


def _call(name, arguments="{}", call_id="call_1"):
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


@pytest.fixture
def registry():
    return ToolRegistry()


class TestExecuteFunctionCall:

    @pytest.mark.asyncio
    async def test_unknown_function(self, registry):
        result = await execute_function_call(_call("nonexistent_function"), registry)
        assert json.loads(result) == {"error": "Function 'nonexistent_function' not found"}

    @pytest.mark.asyncio
    async def test_invalid_json_arguments(self, registry):
        result = json.loads(await execute_function_call(_call("calculate", "invalid json"), registry))
        assert result["error"].startswith("Error executing function:")

    @pytest.mark.asyncio
    async def test_exception_without_message(self, registry):
        def broken(args):
            raise RuntimeError()

        registry.register("broken", broken)
        result = await execute_function_call(_call("broken"), registry)
        assert json.loads(result) == {"error": "Unknown error"}

    @pytest.mark.asyncio
    async def test_exception_message_is_reported(self, registry):
        def broken(args):
            raise ValueError("boom")

        registry.register("broken", broken)
        result = await execute_function_call(_call("broken"), registry)
        assert json.loads(result) == {"error": "Error executing function: boom"}

    @pytest.mark.asyncio
    async def test_async_implementation_is_awaited(self, registry):
        async def lookup(args):
            await asyncio.sleep(0)
            return {"found": args["key"]}

        registry.register("lookup", lookup)
        result = await execute_function_call(_call("lookup", '{"key": "abc"}'), registry)
        assert json.loads(result) == {"found": "abc"}

    @pytest.mark.asyncio
    async def test_string_result_passes_through(self, registry):
        registry.register("echo", lambda args: "plain text")
        assert await execute_function_call(_call("echo"), registry) == "plain text"

    @pytest.mark.asyncio
    async def test_unserializable_result(self, registry):
        registry.register("opaque", lambda args: object())
        result = json.loads(await execute_function_call(_call("opaque"), registry))
        assert "error" in result

    @pytest.mark.asyncio
    async def test_null_arguments_reach_implementation_as_none(self, registry):
        seen = []
        registry.register("capture", lambda args: seen.append(args) or "ok")

        await execute_function_call(_call("capture", "null"), registry)
        assert seen == [None]

    @pytest.mark.asyncio
    async def test_plain_mapping_registry(self):
        result = await execute_function_call(_call("double", '{"n": 4}'), {"double": lambda args: args["n"] * 2})
        assert result == "8"


class TestExecuteToolCalls:

    @pytest.mark.asyncio
    async def test_results_are_correlated_by_call_id(self, registry):
        async def slow(args):
            await asyncio.sleep(0.05)
            return {"value": "slow"}

        async def fast(args):
            return {"value": "fast"}

        registry.register("slow", slow)
        registry.register("fast", fast)

        messages = await execute_tool_calls(
            [_call("slow", call_id="call_slow"), _call("fast", call_id="call_fast")], registry
        )

        assert [m["tool_call_id"] for m in messages] == ["call_slow", "call_fast"]
        assert json.loads(messages[0]["content"]) == {"value": "slow"}
        assert json.loads(messages[1]["content"]) == {"value": "fast"}
        assert all(m["role"] == "tool" for m in messages)

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self, registry):
        messages = await execute_tool_calls(
            [_call("missing", call_id="call_a"), _call("calculate", '{"expression": "2 + 3"}', call_id="call_b")],
            registry,
        )

        assert "error" in json.loads(messages[0]["content"])
        assert json.loads(messages[1]["content"]) == {"expression": "2 + 3", "result": 5}

    @pytest.mark.asyncio
    async def test_empty_list(self, registry):
        assert await execute_tool_calls([], registry) == []

    @pytest.mark.asyncio
    async def test_concurrent_calls_to_one_function_keep_their_own_arguments(self, registry):
        async def echo(args):
            await asyncio.sleep(args["delay"])
            return {"value": args["value"]}

        registry.register("echo", echo)
        specs = [("call_a", "a", 0.05), ("call_b", "b", 0.03), ("call_c", "c", 0.01), ("call_d", "d", 0)]
        calls = [
            _call("echo", json.dumps({"value": value, "delay": delay}), call_id=call_id)
            for call_id, value, delay in specs
        ]

        messages = await execute_tool_calls(calls, registry)

        assert [m["tool_call_id"] for m in messages] == [call_id for call_id, _, _ in specs]
        for message, (_, value, _) in zip(messages, specs):
            assert json.loads(message["content"]) == {"value": value}


class TestBuiltinTools:

    def test_calculate(self):
        assert calculate({"expression": "15 * 8 + 42"}) == {"expression": "15 * 8 + 42", "result": 162}

    @pytest.mark.parametrize("expression, expected", [
        ("10 / 4", 2.5),
        ("2 ^ 10", 1024),
        ("-(3 - 5) * 2", 4),
        ("7 % 3", 1),
        ("9 / 3", 3),
    ])
    def test_evaluate_expression(self, expression, expected):
        assert evaluate_expression(expression) == expected

    @pytest.mark.parametrize("expression", ["__import__('os')", "abc", "1 +", "", "2 ** 100000"])
    def test_rejected_expressions(self, expression):
        with pytest.raises(ValueError):
            evaluate_expression(expression)

    @pytest.mark.asyncio
    async def test_calculate_error_is_returned_as_payload(self):
        result = json.loads(await execute_function_call(_call("calculate", '{"expression": "a + b"}'), ToolRegistry()))
        assert result["error"].startswith("Error executing function:")

    def test_weather_is_stable_per_location(self):
        first = get_weather({"location": "Paris"})
        assert first == get_weather({"location": "paris"}) | {"location": "Paris"}
        assert set(first) == {"location", "temperature", "condition", "humidity", "unit"}
        assert first["unit"] == "celsius"

    def test_current_time_is_iso_utc(self):
        assert get_current_time().endswith("+00:00")


class TestToolRegistry:

    def test_builtins_present_by_default(self):
        registry = ToolRegistry()
        assert {"get_current_time", "calculate", "get_weather"} <= set(registry)
        assert len(ToolRegistry(include_builtins=False)) == 0

    def test_register_and_unregister(self):
        registry = ToolRegistry(include_builtins=False)
        registry.register("f", lambda args: None)

        assert "f" in registry
        assert registry.names() == ["f"]
        assert registry.unregister("f") is True
        assert registry.unregister("f") is False

    def test_register_rejects_non_callable(self):
        with pytest.raises(TypeError):
            ToolRegistry().register("f", "not callable")
