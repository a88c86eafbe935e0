"""Synthesize a tool call when a mandatory tool choice goes unanswered."""

import abc
import json
import re
from typing import Any, Dict, List, Optional, Sequence

from ..models import (
    ChatMessage,
    FunctionCall,
    ToolCall,
    ToolChoice,
    ToolDefinition,
    forced_function_name,
)
from ..utils.logging import LogEvent, LogRecord, info
from .response_parser import generate_tool_call_id

_NUMBER = r"\d+(?:\.\d+)?"
_SYMBOLIC_EXPRESSION = re.compile(rf"{_NUMBER}\s*[+\-*/^%]\s*{_NUMBER}")
_WORD_EXPRESSION = re.compile(
    rf"({_NUMBER})\s+(plus|minus|times|multiplied by|divided by|over)\s+({_NUMBER})",
    re.IGNORECASE,
)
_WORD_OPERATORS = {
    "plus": "+",
    "minus": "-",
    "times": "*",
    "multiplied by": "*",
    "divided by": "/",
    "over": "/",
}
_QUOTED = re.compile(r"\"([^\"]+)\"|(?<!\w)'([^']+)'(?!\w)")
_CAPITALIZED_PLACE = re.compile(r"\b(?:in|at|for|near)\s+([A-Z][\w.'-]*(?:\s+[A-Z][\w.'-]*)*)")
_TRAILING_PLACE = re.compile(r"\b(?:in|at|near)\s+([a-z][a-z'-]*(?:\s+[a-z][a-z'-]*)*)\s*[?.!]*$", re.IGNORECASE)
# Trailing-place matching only looks at the end of the message
_TRAILING_WINDOW = 200
_IANA_ZONE = re.compile(r"\b([A-Z][A-Za-z]+/[A-Za-z_]+(?:/[A-Za-z_]+)?)\b")
_ZONE_ABBREVIATION = re.compile(r"\b(UTC|GMT)(?:\s*([+-]\d{1,2}(?::\d{2})?))?|\b([ECMP][SD]T|CET|CEST|BST|IST|JST)\b")
_SIGNED_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_WORD = re.compile(r"[a-z0-9]+")

_STOPWORDS = {
    "a", "an", "the", "is", "are", "was", "be", "to", "of", "in", "on", "at",
    "for", "and", "or", "me", "my", "i", "you", "it", "what", "whats", "what's",
    "how", "please", "can", "could", "would", "tell", "get", "give", "show",
    "do", "does", "with", "by", "from", "this", "that", "s", "now",
}

_TIME_WORDS = {"time", "clock", "date", "hour", "hours", "today", "timezone", "day"}
_CALC_WORDS = {
    "calculate", "calculation", "compute", "math", "plus", "minus", "times",
    "divided", "multiply", "multiplied", "sum", "add", "subtract", "equals",
    "arithmetic", "expression",
}
_WEATHER_WORDS = {"weather", "temperature", "forecast", "rain", "sunny", "climate", "humidity", "location"}

_CATEGORY_BONUS = 3


def latest_user_message(messages: Sequence[ChatMessage]) -> str:
    for msg in reversed(messages):
        if msg.role == "user":
            return msg.text_content()
    return ""


class ArgumentExtractor(abc.ABC):
    """Strategy that fills one kind of parameter from free text."""

    @abc.abstractmethod
    def claims(self, name: str, schema: Dict[str, Any]) -> bool:
        """Return True if this strategy handles the parameter."""

    @abc.abstractmethod
    def extract(self, message: str, name: str, schema: Dict[str, Any]) -> Optional[Any]:
        """Return the extracted value, or None when the message has nothing usable."""


def _name_matches(name: str, schema: Dict[str, Any], keywords: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


class EnumExtractor(ArgumentExtractor):
    def claims(self, name, schema):
        return bool(schema.get("enum"))

    def extract(self, message, name, schema):
        lowered = message.lower()
        for value in schema["enum"]:
            if isinstance(value, str) and re.search(rf"\b{re.escape(value.lower())}\b", lowered):
                return value
        return None


class ExpressionExtractor(ArgumentExtractor):
    keywords = ("expression", "expr", "formula", "equation", "calculation", "math")

    def claims(self, name, schema):
        return _name_matches(name, schema, self.keywords)

    def extract(self, message, name, schema):
        match = _SYMBOLIC_EXPRESSION.search(message)
        if match:
            return match.group(0)
        match = _WORD_EXPRESSION.search(message)
        if match:
            operator = _WORD_OPERATORS[match.group(2).lower()]
            return f"{match.group(1)} {operator} {match.group(3)}"
        return None


def _message_tail(message: str) -> str:
    text = message.strip()
    if len(text) <= _TRAILING_WINDOW:
        return text
    # Drop the word cut by the window so it cannot pose as "in"/"at"
    parts = text[-_TRAILING_WINDOW:].split(None, 1)
    return parts[1] if len(parts) > 1 else ""


class LocationExtractor(ArgumentExtractor):
    keywords = ("location", "city", "place", "address", "region", "country", "destination")

    def claims(self, name, schema):
        return _name_matches(name, schema, self.keywords)

    def extract(self, message, name, schema):
        match = _QUOTED.search(message)
        if match:
            return match.group(1) or match.group(2)
        match = _CAPITALIZED_PLACE.search(message)
        if match:
            return match.group(1)
        match = _TRAILING_PLACE.search(_message_tail(message))
        if match:
            return match.group(1)
        return None


class TimezoneExtractor(ArgumentExtractor):
    keywords = ("timezone", "time_zone", "tz", "zone")

    def claims(self, name, schema):
        return _name_matches(name, schema, self.keywords)

    def extract(self, message, name, schema):
        match = _IANA_ZONE.search(message)
        if match:
            return match.group(1)
        match = _ZONE_ABBREVIATION.search(message)
        if match:
            if match.group(1):
                return match.group(1) + (match.group(2) or "").replace(" ", "")
            return match.group(3)
        return None


class NumericExtractor(ArgumentExtractor):
    def claims(self, name, schema):
        return schema.get("type") in ("number", "integer")

    def extract(self, message, name, schema):
        match = _SIGNED_NUMBER.search(message)
        if not match:
            return None
        value = float(match.group(0))
        if schema.get("type") == "integer":
            return int(value)
        return int(value) if value.is_integer() else value


class QueryExtractor(ArgumentExtractor):
    keywords = ("query", "question", "prompt", "search", "text", "input", "message", "content", "topic")

    def claims(self, name, schema):
        return schema.get("type", "string") == "string" and (
            name.lower() == "q" or _name_matches(name, schema, self.keywords)
        )

    def extract(self, message, name, schema):
        return message.strip() or None


DEFAULT_EXTRACTORS = (
    EnumExtractor(),
    ExpressionExtractor(),
    LocationExtractor(),
    TimezoneExtractor(),
    NumericExtractor(),
    QueryExtractor(),
)


def _tokens(text: str) -> List[str]:
    return _WORD.findall(text.lower())


class FallbackSynthesizer:
    """
    Build a best-effort tool call from the conversation.

    A specific-function choice always yields a call to that function. With
    ``"required"`` the declared tools are scored by keyword overlap with the
    latest user message and the best match is used; ties and zero scores go
    to the first declared tool.
    """

    def __init__(self, extractors: Optional[Sequence[ArgumentExtractor]] = None):
        self.extractors = list(extractors) if extractors is not None else list(DEFAULT_EXTRACTORS)

    def extract_arguments(self, message: str, parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        arguments: Dict[str, Any] = {}
        if not parameters or not message:
            return arguments
        properties = parameters.get("properties") or {}
        for name, schema in properties.items():
            schema = schema if isinstance(schema, dict) else {}
            for extractor in self.extractors:
                if not extractor.claims(name, schema):
                    continue
                value = extractor.extract(message, name, schema)
                if value is not None:
                    arguments[name] = value
                    break
        return arguments

    def score_tool(self, tool: ToolDefinition, message: str) -> int:
        tool_words = set(_tokens(f"{tool.function.name} {tool.function.description or ''}"))
        message_words = set(_tokens(message))
        score = len((message_words - _STOPWORDS) & tool_words)

        if tool_words & _TIME_WORDS and message_words & _TIME_WORDS:
            score += _CATEGORY_BONUS
        if tool_words & {"calculate", "calculator", "math", "compute", "arithmetic", "expression"} and (
            _SYMBOLIC_EXPRESSION.search(message) or message_words & _CALC_WORDS
        ):
            score += _CATEGORY_BONUS
        if tool_words & _WEATHER_WORDS and (
            message_words & _WEATHER_WORDS or _CAPITALIZED_PLACE.search(message)
        ):
            score += _CATEGORY_BONUS
        return score

    def select_tool(self, tools: Sequence[ToolDefinition], message: str) -> ToolDefinition:
        best = tools[0]
        best_score = self.score_tool(best, message)
        for tool in tools[1:]:
            score = self.score_tool(tool, message)
            if score > best_score:
                best, best_score = tool, score
        return best

    def synthesize(
        self,
        tools: Optional[Sequence[ToolDefinition]],
        tool_choice: Optional[ToolChoice],
        messages: Sequence[ChatMessage],
        request_id: Optional[str] = None,
    ) -> Optional[ToolCall]:
        message = latest_user_message(messages)
        tools = list(tools or [])

        forced_name = forced_function_name(tool_choice)
        if forced_name is not None:
            name = forced_name
            declared = next((t for t in tools if t.function.name == forced_name), None)
            parameters = declared.function.parameters if declared else None
        elif tools:
            selected = self.select_tool(tools, message)
            name = selected.function.name
            parameters = selected.function.parameters
        else:
            return None

        arguments = self.extract_arguments(message, parameters)
        call = ToolCall(
            id=generate_tool_call_id(),
            function=FunctionCall(name=name, arguments=json.dumps(arguments)),
        )
        info(
            LogRecord(
                event=LogEvent.TOOL_CALL_FALLBACK.value,
                message=f"Synthesized fallback call to '{name}'",
                request_id=request_id,
                data={"tool_name": name, "arguments": arguments},
            )
        )
        return call


def synthesize_tool_call(
    tools: Optional[Sequence[ToolDefinition]],
    tool_choice: Optional[ToolChoice],
    messages: Sequence[ChatMessage],
    request_id: Optional[str] = None,
) -> Optional[ToolCall]:
    return FallbackSynthesizer().synthesize(tools, tool_choice, messages, request_id=request_id)
