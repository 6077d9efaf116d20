"""
Framework for building stdio tool servers in Python.

A tool server is a standalone process that answers newline-delimited
JSON-RPC 2.0 on stdin/stdout: the same protocol ToolConnector speaks.
Each tool is a ToolHandler subclass; StdioToolServer routes requests.

Usage:
    class EchoTool(ToolHandler):
        name = "echo"
        description = "Return the arguments unchanged."
        parameters = {"text": {"type": "string", "description": "Text to echo"}}

        def handle(self, params):
            return params

    server = StdioToolServer("echo-server")
    server.register(EchoTool())
    server.run()

Anything written to stdout that is not a JSON-RPC message corrupts the
stream, so servers must log to stderr only.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, TextIO

PROTOCOL_VERSION = "2024-11-05"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


@dataclass
class ToolOutput:
    """Text for the model plus an optional structured payload."""
    text: str
    structured: Any = None


class ToolError(Exception):
    """Raised by a handler to report a tool-level failure (isError result)."""


class ToolHandler:
    """
    Base class for one tool.

    Subclasses set name, description and parameters (JSON Schema
    properties) and implement handle(). handle() may return a string,
    a ToolOutput, or any JSON-compatible value; raising ToolError (or any
    exception) produces an error result instead of crashing the server.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {}
    required: list[str] = []

    def schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object", "properties": self.parameters}
        if self.required:
            schema["required"] = list(self.required)
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": schema,
        }

    def handle(self, params: dict[str, Any]) -> Any:
        raise NotImplementedError


def _text_result(text: str, is_error: bool = False) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "isError": is_error}


class StdioToolServer:
    """Serves registered ToolHandlers over stdin/stdout until EOF."""

    def __init__(self, name: str = "tool-server", version: str = "0.1.0"):
        self.name = name
        self.version = version
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, handler: ToolHandler) -> None:
        if handler.name in self._handlers:
            raise ValueError(f"Tool '{handler.name}' is already registered")
        self._handlers[handler.name] = handler

    def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        handler = self._handlers[name]
        try:
            output = handler.handle(arguments)
        except Exception as e:
            print(f"[{self.name}] tool {name} failed: {e}", file=sys.stderr)
            return _text_result(str(e) or type(e).__name__, is_error=True)

        if isinstance(output, ToolOutput):
            result = _text_result(output.text)
            if output.structured is not None:
                result["structuredContent"] = output.structured
            return result
        if isinstance(output, str):
            return _text_result(output)

        result = _text_result(json.dumps(output, ensure_ascii=False, default=str))
        if isinstance(output, dict):
            result["structuredContent"] = output
        return result

    def dispatch(self, message: dict[str, Any]) -> dict[str, Any] | None:
        """Handle one decoded message; returns the response, None for notifications."""
        method = message.get("method")
        params = message.get("params") or {}
        msg_id = message.get("id")

        if msg_id is None:
            return None
        if not isinstance(params, dict):
            return self._error(msg_id, INVALID_PARAMS, "Invalid params: expected a JSON object")

        if method == "initialize":
            return self._reply(msg_id, {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": self.name, "version": self.version},
            })
        if method == "tools/list":
            return self._reply(msg_id, {"tools": [h.schema() for h in self._handlers.values()]})
        if method == "tools/call":
            name = params.get("name")
            if name not in self._handlers:
                return self._error(msg_id, INVALID_PARAMS, f"Unknown tool: {name}")
            arguments = params.get("arguments") or {}
            if not isinstance(arguments, dict):
                return self._error(msg_id, INVALID_PARAMS, "Invalid params: arguments must be a JSON object")
            return self._reply(msg_id, self.call_tool(name, arguments))
        if method == "ping":
            return self._reply(msg_id, {})

        return self._error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout

        for line in stdin:
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                response = self._error(None, PARSE_ERROR, f"Parse error: {e}")
            else:
                if isinstance(message, dict):
                    response = self.dispatch(message)
                else:
                    response = self._error(None, INVALID_REQUEST, "Invalid request: expected a JSON object")

            if response is not None:
                stdout.write(json.dumps(response, ensure_ascii=False, default=str) + "\n")
                stdout.flush()

    @staticmethod
    def _reply(msg_id: Any, result: Any) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    @staticmethod
    def _error(msg_id: Any, code: int, message: str) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}
