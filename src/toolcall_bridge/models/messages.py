"""Message-related models."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Literal["system", "user", "assistant", "tool"]
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None
    # Kept loose: malformed entries in history are tolerated and skipped later
    tool_calls: Optional[List[Dict[str, Any]]] = None
    tool_call_id: Optional[str] = None

    @model_validator(mode="after")
    def check_tool_message(self) -> "ChatMessage":
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("Tool messages must have a tool_call_id")
        return self

    def text_content(self) -> str:
        """Flatten the content to plain text, joining text parts of a list."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for part in self.content:
            if part.get("type") == "text" and "text" in part:
                parts.append(str(part["text"]))
        return "\n".join(parts)
