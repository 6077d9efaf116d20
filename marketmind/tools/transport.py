"""
Transport layer for tool process communication.

Implements StdioTransport: JSON-RPC 2.0 over stdin/stdout pipes to a
subprocess, one JSON message per line. This is MCP's native local
transport, driven through asyncio so the agent loop never blocks on a
slow tool.
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass
from typing import Any

from marketmind.errors import ToolProtocolError
from marketmind.utils.logger import Logger

logger = Logger("Transport")

# Tool outputs (fetched web pages) can be large; the default is 64 KiB.
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. A request without id is a notification."""
    method: str
    params: dict[str, Any] | None = None
    id: int | str | None = None

    def to_json(self) -> str:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "method": self.method}
        if self.params is not None:
            payload["params"] = self.params
        if self.id is not None:
            payload["id"] = self.id
        return json.dumps(payload, ensure_ascii=False)


@dataclass
class JsonRpcResponse:
    """JSON-RPC 2.0 response."""
    id: int | str | None
    result: Any = None
    error: dict | None = None

    @classmethod
    def from_json(cls, data: str) -> JsonRpcResponse:
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ToolProtocolError(f"Expected a JSON object, got {type(parsed).__name__}")
        return cls(
            id=parsed.get("id"),
            result=parsed.get("result"),
            error=parsed.get("error"),
        )

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def error_message(self) -> str:
        if isinstance(self.error, dict):
            code = self.error.get("code", "unknown")
            message = self.error.get("message", "Unknown error")
            return f"JSON-RPC error {code}: {message}"
        return f"JSON-RPC error: {self.error}"


class StdioTransport:
    """
    JSON-RPC over stdin/stdout pipes to a subprocess.

    The tool server runs as a child process. Requests are written to its
    stdin; responses are read from its stdout, skipping any message whose
    id does not match the pending request (notifications, progress, logs).
    The child's stderr is drained in the background and logged at DEBUG.

    Requests are serialized with a lock: one request is in flight at a time.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        timeout: float = 30.0,
        name: str = "tool",
    ):
        self.command = command
        self.args = list(args or [])
        self.env = env
        self.timeout = timeout
        self._logger = logger.child(name)
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._io_lock = asyncio.Lock()
        self._request_id = 0
        self._broken = False

    async def start(self) -> None:
        """
        Launch the tool server subprocess.

        Raises:
            OSError: If the command cannot be executed
        """
        env = os.environ.copy()
        env.update(self.env or {})

        self._logger.info(f"Starting stdio transport: {' '.join([self.command, *self.args])}")
        self._process = await asyncio.create_subprocess_exec(
            self.command,
            *self.args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
            limit=STREAM_LIMIT,
        )
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        while True:
            line = await self._process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").strip()
            if text:
                self._logger.debug(f"stderr: {text[:500]}")

    def is_alive(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _write(self, request: JsonRpcRequest) -> None:
        if not self.is_alive():
            raise ToolProtocolError("Transport not running. Call start() first.")
        assert self._process is not None and self._process.stdin is not None
        self._process.stdin.write((request.to_json() + "\n").encode("utf-8"))
        await self._process.stdin.drain()

    async def _read(self) -> JsonRpcResponse:
        assert self._process is not None and self._process.stdout is not None
        while True:
            line = await self._process.stdout.readline()
            if not line:
                raise ToolProtocolError("Tool server process closed its output unexpectedly")
            text = line.decode("utf-8", errors="replace").strip()
            if not text:
                continue
            try:
                return JsonRpcResponse.from_json(text)
            except json.JSONDecodeError:
                self._logger.debug(f"Skipping non-JSON output: {text[:200]}")

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Send a request and wait for its matching response.

        Args:
            method: JSON-RPC method, e.g. "tools/list"
            params: Method parameters

        Returns:
            The response's result payload

        Raises:
            ToolProtocolError: On JSON-RPC errors, timeouts or a dead process
        """
        if self._broken:
            raise ToolProtocolError(
                "Transport is broken (a previous request timed out). Restart the server."
            )

        async with self._io_lock:
            request = JsonRpcRequest(method=method, params=params, id=self.next_id())
            await self._write(request)

            while True:
                try:
                    response = await asyncio.wait_for(self._read(), timeout=self.timeout)
                except asyncio.TimeoutError as e:
                    # A late response would desynchronize every following request
                    self._broken = True
                    raise ToolProtocolError(
                        f"Request '{method}' timed out after {self.timeout}s"
                    ) from e

                if response.id != request.id:
                    self._logger.debug(f"Skipping unrelated message (id={response.id})")
                    continue
                if response.is_error:
                    raise ToolProtocolError(response.error_message())
                return response.result

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        async with self._io_lock:
            await self._write(JsonRpcRequest(method=method, params=params))

    async def stop(self) -> None:
        """Terminate the tool server subprocess, killing it after 2 seconds."""
        process = self._process
        if process is None:
            return
        self._process = None

        if process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=2.0)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None

        self._logger.info("Stdio transport stopped")
