"""
Tool Executor
=============

Handles the execution of tools called by the model.

The executor:
1. Parses each tool call's JSON arguments
2. Resolves the connector that owns the tool
3. Invokes it and unwraps the ToolResult into text for the model
4. Recovers from every per-call failure locally

Recovered failures (none of them abort a batch):
- Malformed argument JSON -> the tool runs with {} and a warning is logged
- Unknown tool name       -> the result text is "Tool not found"
- Tool-side failure       -> the result text is {"error": "..."}
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any

from marketmind.agent.messages import ToolCallRequest
from marketmind.tools import TOOL_NOT_FOUND, ToolRegistry, ToolResult
from marketmind.utils.logger import Logger

logger = Logger("ToolExecutor")


@dataclass
class ToolCall:
    """
    A parsed tool call from the model.

    Attributes:
        id: The tool call ID (for matching results)
        name: The tool name
        arguments: Parsed arguments dict
    """
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolCallResult:
    """
    Result of executing a tool call.

    Attributes:
        tool_call_id: The original tool call ID
        name: The tool name
        content: Text appended to the transcript as the tool result
        result: The connector's ToolResult, None if the tool was not found
    """
    tool_call_id: str
    name: str
    content: str
    result: ToolResult | None = None


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """
    Decode a tool call's argument string into a mapping.

    Anything that is not a JSON object (malformed JSON, a list, a number)
    falls back to {} with a warning.
    """
    if not raw:
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON arguments, using empty object: {e}", {"arguments": raw[:200]})
        return {}
    if not isinstance(arguments, dict):
        logger.warning(f"Tool arguments are not an object, using empty object: {raw[:200]}")
        return {}
    return arguments


class ToolExecutor:
    """
    Executes tools called by the model.

    Example:
        executor = ToolExecutor(registry)

        results = await executor.execute_all(response.tool_calls)
        for result in results:
            session.append_tool_result(result.tool_call_id, result.content)
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def parse_tool_call(self, request: ToolCallRequest) -> ToolCall:
        return ToolCall(
            id=request.id,
            name=request.name,
            arguments=parse_arguments(request.arguments),
        )

    async def execute_one(self, request: ToolCallRequest) -> ToolCallResult:
        """
        Execute a single tool call.

        Args:
            request: The tool call requested by the model

        Returns:
            ToolCallResult with the text to append for this call
        """
        connector = self.registry.get(request.name)
        if connector is None:
            logger.warning(f"Tool not found: {request.name}")
            return ToolCallResult(tool_call_id=request.id, name=request.name, content=TOOL_NOT_FOUND)

        call = self.parse_tool_call(request)
        logger.info(f"Calling tool: {call.name}", {"arguments": call.arguments})

        start = time.monotonic()
        result = await connector.invoke(call.name, call.arguments)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        content = result.to_message()
        if result.success:
            logger.debug(f"Result ({elapsed_ms}ms): {content[:200]}...")
        else:
            logger.warning(f"Tool {call.name} failed ({elapsed_ms}ms): {result.error}")

        return ToolCallResult(tool_call_id=call.id, name=call.name, content=content, result=result)

    async def execute_all(self, requests: list[ToolCallRequest]) -> list[ToolCallResult]:
        """
        Execute a batch of tool calls sequentially, in request order.

        Args:
            requests: Tool calls from one model turn

        Returns:
            List of ToolCallResults in the same order
        """
        results = []
        for request in requests:
            results.append(await self.execute_one(request))
        return results

    async def execute_parallel(self, requests: list[ToolCallRequest]) -> list[ToolCallResult]:
        """
        Execute a batch of tool calls concurrently.

        Results are still returned in request order, so the transcript is
        the same as with execute_all().
        """
        results = await asyncio.gather(*(self.execute_one(r) for r in requests))
        return list(results)
