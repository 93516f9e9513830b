"""
Schema definitions for model <-> agent loop <-> tool messages.

These data models serve as the contract between the model client, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.  All models are frozen: a turn is never edited once it is part of a conversation.
"""

import json
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

TOOL_FAILURE_PREFIX = "Tool execution failed: "


class Role(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCall(BaseModel):
    """A call that the model wants the agent to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifier correlating the call with its tool turn")
    name: str = Field(..., description="Registered tool name")
    arguments: str = Field("{}", description="JSON-encoded keyword arguments for the tool")

    def to_wire(self) -> Dict[str, Any]:
        """Return the chat-completions representation of this call."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class Turn(BaseModel):
    """A single message in the conversation (the model's context window)."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=Role.USER, content=text)

    @classmethod
    def system(cls, text: str) -> "Turn":
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def assistant(cls, text: Optional[str], tool_calls: List[ToolCall] | None = None) -> "Turn":
        return cls(role=Role.ASSISTANT, content=text, tool_calls=tuple(tool_calls or ()))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Turn":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    def to_message(self) -> Dict[str, Any]:
        """Serialise to the record shape expected by chat-completions back-ends."""
        message: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        return message


class ParameterSpec(BaseModel):
    """One named, typed argument of a tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True


class ToolSpec(BaseModel):
    """Static declaration of a tool, shared read-only by the model client and the executor."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Tuple[ParameterSpec, ...] = ()

    def required_parameters(self) -> List[str]:
        return [p.name for p in self.parameters if p.required]

    def to_openai_tool(self) -> Dict[str, Any]:
        """Render as an OpenAI function-calling tool definition."""
        properties = {
            p.name: {"type": p.type, "description": p.description} for p in self.parameters
        }
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": self.required_parameters(),
                },
            },
        }


class ToolResult(BaseModel):
    """Outcome of executing one tool call: a success payload or a failure message."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    payload: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def success(cls, payload: Any) -> "ToolResult":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, message: str, kind: str = "ToolError") -> "ToolResult":
        return cls(ok=False, error=message, error_kind=kind)

    @property
    def is_error(self) -> bool:
        return not self.ok

    @property
    def content(self) -> str:
        """Text stored in the tool turn that answers the call."""
        if not self.ok:
            return f"{TOOL_FAILURE_PREFIX}{self.error}"
        if isinstance(self.payload, str):
            return self.payload
        return json.dumps(self.payload, ensure_ascii=False)


class ModelResponse(BaseModel):
    """The single structured answer a model client returns per call."""

    model_config = ConfigDict(frozen=True)

    text: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()


class ModelConfig(BaseModel):
    """Opaque per-session configuration handed to the model client."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    base_url: str
    api_key: str
    model: str
    max_tokens: int = 1500
    temperature: float = 0.7
