from __future__ import annotations

import io
import json

import pytest

from marketmind.tools.server import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    StdioToolServer,
    ToolError,
    ToolHandler,
    ToolOutput,
)


class AddTool(ToolHandler):
    name = "add"
    description = "Add two numbers."
    parameters = {"a": {"type": "number"}, "b": {"type": "number"}}
    required = ["a", "b"]

    def handle(self, params):
        return params["a"] + params["b"]


class GreetTool(ToolHandler):
    name = "greet"
    description = "Say hello."

    def handle(self, params):
        return ToolOutput(text=f"Hello, {params.get('who', 'world')}!", structured={"who": params.get("who")})


class BrokenTool(ToolHandler):
    name = "broken"
    description = "Always fails."

    def handle(self, params):
        raise ToolError("upstream unavailable")


@pytest.fixture()
def server():
    srv = StdioToolServer("test-server", "9.9.9")
    srv.register(AddTool())
    srv.register(GreetTool())
    srv.register(BrokenTool())
    return srv


def _run(server, *messages) -> list[dict]:
    lines = [m if isinstance(m, str) else json.dumps(m) for m in messages]
    stdout = io.StringIO()
    server.run(stdin=io.StringIO("\n".join(lines) + "\n"), stdout=stdout)
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


def test_initialize_reports_server_info(server):
    response = server.dispatch({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})

    assert response["id"] == 1
    assert response["result"]["serverInfo"] == {"name": "test-server", "version": "9.9.9"}
    assert "tools" in response["result"]["capabilities"]


def test_tools_list_includes_schemas(server):
    tools = server.dispatch({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})["result"]["tools"]

    assert [t["name"] for t in tools] == ["add", "greet", "broken"]
    assert tools[0]["inputSchema"] == {
        "type": "object",
        "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
        "required": ["a", "b"],
    }
    assert "required" not in tools[1]["inputSchema"]


def test_call_returns_json_text_for_plain_values(server):
    result = server.call_tool("add", {"a": 2, "b": 3})

    assert result == {"content": [{"type": "text", "text": "5"}], "isError": False}


def test_call_with_tool_output_adds_structured_content(server):
    result = server.call_tool("greet", {"who": "Ada"})

    assert result["content"][0]["text"] == "Hello, Ada!"
    assert result["structuredContent"] == {"who": "Ada"}


def test_handler_exception_becomes_error_result(server):
    result = server.call_tool("broken", {})

    assert result["isError"] is True
    assert result["content"][0]["text"] == "upstream unavailable"


def test_unknown_tool_is_invalid_params(server):
    response = server.dispatch({"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {"name": "nope"}})

    assert response["error"]["code"] == INVALID_PARAMS


def test_unknown_method(server):
    response = server.dispatch({"jsonrpc": "2.0", "id": 4, "method": "resources/list"})

    assert response["error"]["code"] == METHOD_NOT_FOUND


def test_duplicate_registration_is_rejected(server):
    with pytest.raises(ValueError):
        server.register(AddTool())


def test_run_answers_requests_and_ignores_notifications(server):
    responses = _run(
        server,
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        "",
        {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"name": "add", "arguments": {"a": 1, "b": 1}}},
    )

    assert [r["id"] for r in responses] == [1, 2]
    assert responses[1]["result"]["content"][0]["text"] == "2"


def test_run_reports_parse_errors_and_keeps_going(server):
    responses = _run(server, "{not json", "[1, 2]", {"jsonrpc": "2.0", "id": 7, "method": "ping"})

    assert responses[0]["error"]["code"] == PARSE_ERROR
    assert responses[1]["id"] is None
    assert "error" in responses[1]
    assert responses[2] == {"jsonrpc": "2.0", "id": 7, "result": {}}


@pytest.mark.parametrize(
    "params",
    [[1, 2], "add", {"name": "add", "arguments": [1, 2]}],
)
def test_non_object_params_are_invalid_params(server, params):
    response = server.dispatch({"jsonrpc": "2.0", "id": 5, "method": "tools/call", "params": params})

    assert response["id"] == 5
    assert response["error"]["code"] == INVALID_PARAMS


def test_run_survives_non_object_params(server):
    responses = _run(
        server,
        {"jsonrpc": "2.0", "id": 1, "method": "tools/list", "params": [1, 2]},
        {"jsonrpc": "2.0", "id": 2, "method": "ping"},
    )

    assert responses[0]["error"]["code"] == INVALID_PARAMS
    assert responses[1] == {"jsonrpc": "2.0", "id": 2, "result": {}}
