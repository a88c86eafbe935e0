"""Request models for API endpoints."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .messages import ChatMessage
from .tools import ToolChoice, ToolDefinition, is_mandatory_tool_choice, validate_tools


class ChatCompletionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[ChatMessage]
    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[ToolChoice] = None
    stream: Optional[bool] = False
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    n: Optional[int] = None
    stop: Optional[Union[str, List[str]]] = None
    user: Optional[str] = None

    @field_validator("tools", mode="before")
    def check_tools(cls, v: Any) -> Any:
        result = validate_tools(v)
        if not result.valid:
            raise ValueError("Invalid tools: " + "; ".join(result.errors))
        return v

    @field_validator("messages")
    def check_messages(cls, v: List[ChatMessage]) -> List[ChatMessage]:
        if not v:
            raise ValueError("messages must contain at least one message")
        return v

    @field_validator("max_tokens")
    def check_max_tokens(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("max_tokens must be greater than 0")
        return v

    @model_validator(mode="after")
    def check_tool_choice_has_tools(self) -> "ChatCompletionRequest":
        if is_mandatory_tool_choice(self.tool_choice) and not self.tools:
            raise ValueError("tool_choice requires tools to be specified")
        return self

    @model_validator(mode="after")
    def check_tool_call_references(self) -> "ChatCompletionRequest":
        seen_ids = set()
        for msg in self.messages:
            if msg.role == "assistant" and msg.tool_calls:
                for call in msg.tool_calls:
                    if isinstance(call.get("id"), str):
                        seen_ids.add(call["id"])
            elif msg.role == "tool" and msg.tool_call_id not in seen_ids:
                raise ValueError(
                    f"Tool message tool_call_id '{msg.tool_call_id}' must reference a prior assistant tool call"
                )
        return self
