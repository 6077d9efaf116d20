"""
Shared fixtures for the MarketMind test suite.

Provides a scripted chat backend (an AsyncOpenAI look-alike that replays
canned completions) and in-process fake tool connectors, so agent tests
exercise the real loop without network access or child processes.
"""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from marketmind.tools import ToolDescriptor, ToolResult
from marketmind.errors import ToolConnectionError

TESTS_DIR = Path(__file__).parent
REPO_ROOT = TESTS_DIR.parent


# ---------------------------------------------------------------------------
# Scripted chat backend
# ---------------------------------------------------------------------------

def tool_call(name: str, arguments: Any = None, call_id: str = "call_1") -> SimpleNamespace:
    """A blocking-mode tool call as the SDK returns it."""
    if arguments is None:
        arguments = "{}"
    elif not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def completion(content: str | None = "", tool_calls: list | None = None) -> SimpleNamespace:
    """A blocking-mode chat completion."""
    message = SimpleNamespace(content=content, tool_calls=tool_calls or None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def chunk(content: str | None = None, tool_calls: list | None = None) -> SimpleNamespace:
    """One streamed chunk."""
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


def fragment(index: int, call_id: str | None = None, name: str | None = None,
             arguments: str | None = None) -> SimpleNamespace:
    """One streamed tool-call fragment."""
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class _AsyncChunks:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._chunks:
            raise StopAsyncIteration
        return self._chunks.pop(0)


class ScriptedBackend:
    """
    Replays scripted responses from chat.completions.create().

    Each script entry is a completion (blocking mode), a list of chunks
    (streaming mode) or an exception to raise. When the script runs out,
    the last entry repeats if repeat_last is set.
    """

    def __init__(self, script: list, repeat_last: bool = False):
        self.script = list(script)
        self.repeat_last = repeat_last
        self.requests: list[dict] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    async def _create(self, **kwargs):
        self.requests.append(kwargs)
        if len(self.script) > 1 or not self.repeat_last:
            entry = self.script.pop(0)
        else:
            entry = self.script[0]

        if isinstance(entry, BaseException):
            raise entry
        if kwargs.get("stream"):
            return _AsyncChunks(entry)
        return entry


# ---------------------------------------------------------------------------
# Fake tool connectors
# ---------------------------------------------------------------------------

class FakeConnector:
    """
    In-process stand-in for ToolConnector.

    Every tool echoes its arguments back unless a handler is given.
    """

    def __init__(self, name: str, tool_names: list[str], handler=None, init_error: Exception | None = None):
        self.name = name
        self._tool_names = tool_names
        self._handler = handler
        self._init_error = init_error
        self._tools: list[ToolDescriptor] = []
        self.init_count = 0
        self.close_count = 0
        self.calls: list[tuple[str, dict]] = []

    async def init(self) -> None:
        self.init_count += 1
        if self._init_error is not None:
            raise self._init_error
        self._tools = [
            ToolDescriptor(name=n, description=f"{n} tool", input_schema={"type": "object", "properties": {}})
            for n in self._tool_names
        ]

    def get_tools(self) -> list[ToolDescriptor]:
        return list(self._tools)

    async def invoke(self, tool_name: str, arguments: dict) -> ToolResult:
        self.calls.append((tool_name, arguments))
        if self._handler is not None:
            return self._handler(tool_name, arguments)
        return ToolResult.ok(arguments)

    async def close(self) -> None:
        self.close_count += 1


@pytest.fixture()
def echo_connector() -> FakeConnector:
    return FakeConnector("echo-server", ["echo"])


@pytest.fixture()
def failing_connector() -> FakeConnector:
    return FakeConnector(
        "broken",
        ["never"],
        init_error=ToolConnectionError("broken", "Failed to start process: spawn ENOENT"),
    )
