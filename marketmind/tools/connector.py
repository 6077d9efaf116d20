"""
Tool Connector
==============

Owns one external tool process: launches it, performs the MCP handshake,
lists its tools, invokes them by name and shuts it down.

Lifecycle:
    idle ──init()──> connected ──close()──> closed

- init() raises ToolConnectionError if the process cannot be started or the
  handshake fails; the half-started process is torn down first. A connector
  whose init() failed is not reused.
- invoke() never raises: every failure becomes ToolResult(success=False).
- close() never raises and can be called any number of times.

Example:
    fetch = ToolConnector("fetch", "uvx", ["mcp-server-fetch"])
    await fetch.init()

    result = await fetch.invoke("fetch", {"url": "https://example.com"})
    if result.success:
        print(result.output)

    await fetch.close()
"""

import json
from typing import Any

from marketmind import __version__
from marketmind.errors import ToolConnectionError
from marketmind.tools import ToolDescriptor, ToolResult
from marketmind.tools.transport import StdioTransport
from marketmind.utils.logger import Logger

logger = Logger("Connector")

PROTOCOL_VERSION = "2024-11-05"


def _content_block_to_text(block: Any) -> str:
    if isinstance(block, str):
        return block
    if isinstance(block, dict) and "text" in block:
        return str(block.get("text", ""))
    return json.dumps(block, ensure_ascii=False)


def _error_text(result: dict) -> str:
    """Join the text blocks of an isError tools/call result."""
    content = result.get("content")
    if isinstance(content, list):
        text = "\n".join(_content_block_to_text(b) for b in content).strip()
        return text or "Tool returned an error result"
    return str(content or "Tool returned an error result")


class ToolConnector:
    """
    Connection handle to one MCP tool server running over stdio.

    Attributes:
        name: Connector name, used in logs and errors
        command: Executable that launches the server
        args: Arguments for the executable
    """

    def __init__(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float = 30.0,
        version: str = __version__,
    ):
        """
        Initialize an idle connector. Nothing is launched until init().

        Args:
            name: Connector name
            command: Executable to launch (e.g. "uvx", "npx", "python")
            args: Arguments for the executable
            env: Extra environment variables for the child process
            timeout: Seconds to wait for each response
            version: Client version reported during the handshake
        """
        self.name = name
        self.command = command
        self.args = list(args or [])
        self.env = env
        self.timeout = timeout
        self.version = version

        self._transport: StdioTransport | None = None
        self._tools: list[ToolDescriptor] = []
        self._logger = logger.child(name)

    @property
    def connected(self) -> bool:
        return self._transport is not None

    async def init(self) -> None:
        """
        Launch the tool process, run the handshake and load its tools.

        Raises:
            ToolConnectionError: If the process cannot be started or the
                handshake / tool listing fails
        """
        self._logger.info(f"Connecting to tool server: {self.command} {' '.join(self.args)}")

        transport = StdioTransport(
            self.command,
            self.args,
            env=self.env,
            timeout=self.timeout,
            name=self.name,
        )

        try:
            await transport.start()
            await transport.request("initialize", {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": self.name, "version": self.version},
            })
            await transport.notify("notifications/initialized")

            listing = await transport.request("tools/list", {})
            tools = [ToolDescriptor.from_dict(t) for t in (listing or {}).get("tools", [])]
        except Exception as e:
            self._logger.error("Failed to connect to tool server", e)
            await self._stop_quietly(transport)
            raise ToolConnectionError(self.name, f"Failed to connect to tool server: {e}") from e

        self._transport = transport
        self._tools = tools
        self._logger.info(f"Connected with tools: {[t.name for t in tools]}")

    def get_tools(self) -> list[ToolDescriptor]:
        """Return the descriptors loaded by init(); empty before init()."""
        return list(self._tools)

    def has_tool(self, name: str) -> bool:
        return any(t.name == name for t in self._tools)

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Call a tool by name.

        Args:
            tool_name: Name of a tool this connector exposes
            arguments: JSON-compatible argument mapping

        Returns:
            ToolResult with the raw tools/call result as output, or the
            failure reason as error
        """
        if self._transport is None:
            return ToolResult.fail(f"Connector '{self.name}' is not connected")
        if not self.has_tool(tool_name):
            return ToolResult.fail(f"Tool '{tool_name}' is not provided by '{self.name}'")

        try:
            result = await self._transport.request(
                "tools/call", {"name": tool_name, "arguments": arguments}
            )
        except Exception as e:
            self._logger.error(f'Error calling tool "{tool_name}"', e)
            return ToolResult.fail(str(e))

        if isinstance(result, dict) and result.get("isError") is True:
            return ToolResult.fail(_error_text(result))
        return ToolResult.ok(result)

    async def close(self) -> None:
        """Shut the tool process down. Errors are logged, never raised."""
        transport, self._transport = self._transport, None
        self._tools = []
        if transport is None:
            return
        await self._stop_quietly(transport)

    async def _stop_quietly(self, transport: StdioTransport) -> None:
        try:
            await transport.stop()
        except Exception as e:
            self._logger.warning(f"Error closing tool server: {e}")

    def __repr__(self) -> str:
        state = "connected" if self.connected else "idle"
        return f"ToolConnector(name={self.name!r}, command={self.command!r}, {state})"


__all__ = ["ToolConnector", "PROTOCOL_VERSION"]
