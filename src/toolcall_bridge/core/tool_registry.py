"""Registry of callable tool implementations and the built-in tools."""

import ast
import hashlib
import operator
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..utils.logging import LogEvent, LogRecord, debug

ToolFunction = Callable[[Any], Any]

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
_MAX_EXPONENT = 1000

_WEATHER_CONDITIONS = ["sunny", "partly cloudy", "cloudy", "light rain", "windy", "clear"]


def _evaluate_node(node: ast.AST) -> Any:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate_node(node.left)
        right = _evaluate_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate_node(node.operand))
    raise ValueError(f"Unsupported expression syntax: {type(node).__name__}")


def evaluate_expression(expression: str) -> Any:
    """Evaluate plain arithmetic without touching ``eval``."""
    expression = expression.strip().replace("^", "**")
    if not expression:
        raise ValueError("Missing required parameter: expression")
    try:
        parsed = ast.parse(expression, mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Invalid expression: {expression}") from exc
    result = _evaluate_node(parsed)
    if isinstance(result, float) and result.is_integer():
        return int(result)
    return result


def get_current_time(args: Optional[Dict[str, Any]] = None) -> str:
    return datetime.now(timezone.utc).isoformat()


def calculate(args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    expression = str((args or {}).get("expression", ""))
    return {"expression": expression, "result": evaluate_expression(expression)}


def get_weather(args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return mock weather that is stable for a given location."""
    location = str((args or {}).get("location") or "Unknown")
    digest = int(hashlib.sha256(location.lower().encode("utf-8")).hexdigest(), 16)
    return {
        "location": location,
        "temperature": digest % 35,
        "condition": _WEATHER_CONDITIONS[digest % len(_WEATHER_CONDITIONS)],
        "humidity": 30 + digest % 60,
        "unit": "celsius",
    }


BUILTIN_TOOLS: Dict[str, ToolFunction] = {
    "get_current_time": get_current_time,
    "calculate": calculate,
    "get_weather": get_weather,
}


class ToolRegistry:
    """Name to implementation mapping owned by one service instance."""

    def __init__(self, include_builtins: bool = True):
        self._functions: Dict[str, ToolFunction] = {}
        if include_builtins:
            self._functions.update(BUILTIN_TOOLS)

    def register(self, name: str, function: ToolFunction) -> None:
        if not name:
            raise ValueError("Function name is required")
        if not callable(function):
            raise TypeError(f"Implementation for '{name}' is not callable")
        self._functions[name] = function
        debug(
            LogRecord(
                event=LogEvent.TOOL_FUNCTION_REGISTERED.value,
                message=f"Registered tool function '{name}'",
                data={"tool_name": name},
            )
        )

    def unregister(self, name: str) -> bool:
        return self._functions.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolFunction]:
        return self._functions.get(name)

    def names(self) -> List[str]:
        return list(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

