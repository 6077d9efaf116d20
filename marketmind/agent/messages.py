"""
Conversation message types.

The transcript is a list of immutable Message values. Each one knows how
to render itself in the chat-completions wire format.
"""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCallRequest:
    """
    A tool call requested by the model.

    Attributes:
        id: Correlation key for the tool result ("" if the backend omitted it)
        name: The tool name
        arguments: JSON-encoded arguments, not yet parsed (may be malformed)
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_openai(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """One transcript turn. Build with the role-specific constructors."""
    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str | None = None, tool_calls=()) -> "Message":
        return cls(Role.ASSISTANT, content, tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)

    def to_openai_message(self) -> dict:
        message: dict = {"role": self.role.value, "content": self.content or ""}
        if self.role is Role.ASSISTANT and self.tool_calls:
            message["tool_calls"] = [call.to_openai() for call in self.tool_calls]
        if self.role is Role.TOOL:
            message["tool_call_id"] = self.tool_call_id or ""
        return message


@dataclass(frozen=True)
class ChatResponse:
    """What one advance() of the conversation produced."""
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
