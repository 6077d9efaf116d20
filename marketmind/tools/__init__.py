"""
Tool System
===========

Tools live in external processes that speak the Model Context Protocol (MCP)
over stdio. This module holds the in-process view of them:

- ToolDescriptor: name, description and JSON Schema of one remote tool
- ToolResult: standardized outcome of invoking a tool
- ToolRegistry: tool name -> owning connector, built once per agent run

How a tool call flows:
1. A ToolConnector spawns its process and lists its tools (descriptors)
2. The registry indexes every descriptor by name
3. The model asks for a tool by name
4. The registry resolves the connector, the connector invokes the tool
5. The ToolResult is unwrapped into plain text for the model

Duplicate names:
    When two connectors expose the same tool name, the connector registered
    first owns it. The shadowed duplicate is logged as a warning and recorded
    in ToolRegistry.duplicates.
"""

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from marketmind.utils.logger import Logger

if TYPE_CHECKING:
    from marketmind.tools.connector import ToolConnector

logger = Logger("Tools")

DEFAULT_INPUT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}
TOOL_NOT_FOUND = "Tool not found"


@dataclass(frozen=True)
class ToolDescriptor:
    """
    Metadata advertising one invocable tool.

    Attributes:
        name: Tool name, unique within its connector
        description: What the tool does (shown to the model)
        input_schema: JSON Schema for the tool's arguments
    """
    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_INPUT_SCHEMA))

    @classmethod
    def from_dict(cls, data: dict) -> "ToolDescriptor":
        """Build from a tools/list entry, filling in missing fields."""
        return cls(
            name=data["name"],
            description=data.get("description") or "No description provided",
            input_schema=data.get("inputSchema") or dict(DEFAULT_INPUT_SCHEMA),
        )

    def to_openai_function(self) -> dict:
        """
        Convert to OpenAI function calling format.

        Returns:
            Dict in the format expected by OpenAI's API
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            }
        }


@dataclass
class ToolResult:
    """
    Standardized result from tool execution.

    Exactly one half is meaningful: output when success is True,
    error when it is False.

    Attributes:
        success: Whether the tool executed successfully
        output: The result payload (structure varies by tool)
        error: Error message if success is False
    """
    success: bool
    output: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, output: Any) -> "ToolResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_message(self) -> str:
        """
        Format as tool-result content for the model.

        Only the meaningful half is serialized, never the wrapper: the
        output on success, {"error": ...} on failure.
        """
        if self.success:
            if isinstance(self.output, str):
                return self.output
            return json.dumps(self.output, default=str, ensure_ascii=False)
        return json.dumps({"error": self.error}, ensure_ascii=False)


class ToolRegistry:
    """
    Maps tool names to the connector that owns them.

    Built once from connectors in registration order, after they have
    connected. Lookups are then O(1) instead of rescanning every connector.

    Example:
        registry = ToolRegistry.from_connectors([fetch, files])

        connector = registry.get("fetch")
        schemas = registry.get_openai_functions()
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._owners: dict[str, "ToolConnector"] = {}
        self._descriptors: dict[str, ToolDescriptor] = {}
        self.duplicates: list[tuple[str, str]] = []

    @classmethod
    def from_connectors(cls, connectors: list["ToolConnector"]) -> "ToolRegistry":
        registry = cls()
        for connector in connectors:
            registry.register_connector(connector)
        return registry

    def register_connector(self, connector: "ToolConnector") -> None:
        """
        Register every tool a connector exposes.

        A name already owned by an earlier connector keeps its first owner;
        the duplicate is logged and recorded as (tool name, connector name).

        Args:
            connector: A connected ToolConnector
        """
        for tool in connector.get_tools():
            owner = self._owners.get(tool.name)
            if owner is not None:
                logger.warning(
                    f"Duplicate tool '{tool.name}' from '{connector.name}' "
                    f"is shadowed by '{owner.name}'"
                )
                self.duplicates.append((tool.name, connector.name))
                continue

            self._owners[tool.name] = connector
            self._descriptors[tool.name] = tool
            logger.debug(f"Registered tool: {tool.name} ({connector.name})")

    def get(self, name: str) -> "ToolConnector | None":
        """
        Get the connector owning a tool.

        Args:
            name: The tool name

        Returns:
            The owning connector, or None if no connector exposes it
        """
        return self._owners.get(name)

    def get_all(self) -> list[ToolDescriptor]:
        """Get all registered tool descriptors, in registration order."""
        return list(self._descriptors.values())

    def get_openai_functions(self) -> list[dict]:
        return [tool.to_openai_function() for tool in self._descriptors.values()]

    def list_names(self) -> list[str]:
        return list(self._descriptors.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._descriptors)


__all__ = [
    "DEFAULT_INPUT_SCHEMA",
    "TOOL_NOT_FOUND",
    "ToolDescriptor",
    "ToolResult",
    "ToolRegistry",
]
