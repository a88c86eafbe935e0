"""Tool-related models."""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FunctionDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None

    @field_validator("parameters")
    def check_parameters_type(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is not None and v.get("type") != "object":
            raise ValueError('parameters type must be "object"')
        return v


class ToolDefinition(BaseModel):
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolChoiceFunctionName(BaseModel):
    name: str


class ToolChoiceFunction(BaseModel):
    type: Literal["function"] = "function"
    function: ToolChoiceFunctionName


ToolChoice = Union[Literal["auto", "none", "required"], ToolChoiceFunction]


class FunctionCall(BaseModel):
    name: str
    arguments: str


class ToolCall(BaseModel):
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class ToolValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


def is_mandatory_tool_choice(tool_choice: Optional[ToolChoice]) -> bool:
    """True when the policy demands at least one tool call in the reply."""
    return tool_choice == "required" or isinstance(tool_choice, ToolChoiceFunction)


def forced_function_name(tool_choice: Optional[ToolChoice]) -> Optional[str]:
    if isinstance(tool_choice, ToolChoiceFunction):
        return tool_choice.function.name
    return None


def validate_tools(tools: Any) -> ToolValidationResult:
    """Check raw tool definitions and collect every problem found."""
    if tools is None:
        return ToolValidationResult(valid=True)
    if not isinstance(tools, list):
        return ToolValidationResult(valid=False, errors=["Tools must be an array"])

    errors: List[str] = []
    for i, tool in enumerate(tools):
        if not isinstance(tool, dict):
            errors.append(f"Tool {i}: must be an object")
            continue
        if tool.get("type") != "function":
            errors.append(f'Tool {i}: type must be "function"')
            continue
        function = tool.get("function")
        if not isinstance(function, dict):
            errors.append(f"Tool {i}: function definition is required")
            continue
        name = function.get("name")
        if not isinstance(name, str) or not name:
            errors.append(f"Tool {i}: function name is required")
            continue
        parameters = function.get("parameters")
        if parameters is not None and (not isinstance(parameters, dict) or parameters.get("type") != "object"):
            errors.append(f'Tool {i}: parameters type must be "object"')

    return ToolValidationResult(valid=not errors, errors=errors)
