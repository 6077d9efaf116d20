from __future__ import annotations

import httpx
import openai
import pytest

from conftest import ScriptedBackend, chunk, completion, fragment, tool_call

from marketmind.agent.conversation import ChatSession
from marketmind.agent.messages import Message, Role, ToolCallRequest
from marketmind.errors import BackendError
from marketmind.tools import ToolDescriptor

QUOTE_TOOL = ToolDescriptor(
    name="get_stock_quote",
    description="Fetch a real-time quote",
    input_schema={"type": "object", "properties": {"symbol": {"type": "string"}}},
)


def _session(backend, **kwargs) -> ChatSession:
    kwargs.setdefault("echo", False)
    return ChatSession(model="gpt-4o-mini", client=backend, **kwargs)


def test_system_prompt_then_context_open_the_transcript():
    session = _session(ScriptedBackend([]), system_prompt="You are helpful.", context="AAPL closed at 190.")

    assert session.messages == (
        Message.system("You are helpful."),
        Message.user("AAPL closed at 190."),
    )


def test_empty_system_prompt_and_context_are_omitted():
    assert _session(ScriptedBackend([])).messages == ()
    assert _session(ScriptedBackend([]), context="ctx").messages == (Message.user("ctx"),)


@pytest.mark.asyncio
async def test_advance_appends_prompt_and_one_assistant_turn():
    backend = ScriptedBackend([completion("Hello!")])
    session = _session(backend, system_prompt="sys")

    response = await session.advance("Hi")

    assert response.content == "Hello!"
    assert response.tool_calls == []
    assert [m.role for m in session.messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert backend.requests[0]["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "Hi"},
    ]


@pytest.mark.asyncio
async def test_tool_schema_is_sent_in_function_format():
    backend = ScriptedBackend([completion("ok")])
    session = _session(backend, tools=[QUOTE_TOOL])

    await session.advance("quote?")

    request = backend.requests[0]
    assert request["tool_choice"] == "auto"
    assert request["tools"] == [{
        "type": "function",
        "function": {
            "name": "get_stock_quote",
            "description": "Fetch a real-time quote",
            "parameters": {"type": "object", "properties": {"symbol": {"type": "string"}}},
        },
    }]


@pytest.mark.asyncio
async def test_no_tools_means_no_tools_parameter():
    backend = ScriptedBackend([completion("ok")])

    await _session(backend).advance("hi")

    assert "tools" not in backend.requests[0]
    assert "tool_choice" not in backend.requests[0]


@pytest.mark.asyncio
async def test_tool_calls_are_recorded_and_results_follow():
    backend = ScriptedBackend([
        completion(None, [tool_call("get_stock_quote", {"symbol": "AAPL"}, call_id="call_1")]),
        completion("AAPL is at 190."),
    ])
    session = _session(backend, tools=[QUOTE_TOOL])

    response = await session.advance("What is AAPL at?")
    assert response.has_tool_calls
    assert response.tool_calls == [
        ToolCallRequest(id="call_1", name="get_stock_quote", arguments='{"symbol": "AAPL"}')
    ]

    session.append_tool_result("call_1", '{"current": 190}')
    final = await session.advance()

    assert final.content == "AAPL is at 190."
    assert not final.has_tool_calls
    second_request = backend.requests[1]["messages"]
    assert second_request[-2] == {
        "role": "assistant",
        "content": "",
        "tool_calls": [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_stock_quote", "arguments": '{"symbol": "AAPL"}'},
        }],
    }
    assert second_request[-1] == {"role": "tool", "tool_call_id": "call_1", "content": '{"current": 190}'}


@pytest.mark.asyncio
async def test_missing_call_id_and_arguments_get_defaults():
    raw = tool_call("list_files")
    raw.id = None
    raw.function.arguments = ""
    session = _session(ScriptedBackend([completion("", [raw])]))

    response = await session.advance("ls")

    assert response.tool_calls == [ToolCallRequest(id="", name="list_files", arguments="{}")]


@pytest.mark.asyncio
async def test_backend_failure_raises_and_leaves_transcript_untouched():
    error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
    session = _session(ScriptedBackend([error]), system_prompt="sys")

    with pytest.raises(BackendError) as exc_info:
        await session.advance("Hi")

    assert exc_info.value.__cause__ is error
    assert session.messages == (Message.system("sys"),)


@pytest.mark.asyncio
async def test_streaming_mode_accumulates_text_and_tool_calls():
    backend = ScriptedBackend([[
        chunk(content="Let me "),
        chunk(content="check."),
        chunk(tool_calls=[fragment(0, call_id="call_9", name="get_stock_quote", arguments='{"symbol"')]),
        chunk(tool_calls=[fragment(0, arguments=': "TSLA"}')]),
    ]])
    session = _session(backend, stream=True, tools=[QUOTE_TOOL])

    response = await session.advance("TSLA?")

    assert backend.requests[0]["stream"] is True
    assert response.content == "Let me check."
    assert response.tool_calls == [
        ToolCallRequest(id="call_9", name="get_stock_quote", arguments='{"symbol": "TSLA"}')
    ]
    assistant = session.messages[-1]
    assert assistant.role is Role.ASSISTANT
    assert assistant.content == "Let me check."
    assert len(session.messages) == 2


@pytest.mark.asyncio
async def test_streaming_echoes_fragments_to_stdout(capsys):
    backend = ScriptedBackend([[chunk(content="Hel"), chunk(content="lo")]])
    session = ChatSession(model="m", client=backend, stream=True, echo=True)

    await session.advance("hi")

    assert "Hello\n" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_transcript_only_grows():
    backend = ScriptedBackend([completion("", [tool_call("a", call_id="c1")]), completion("done")])
    session = _session(backend, system_prompt="sys")

    snapshots = [session.messages]
    await session.advance("go")
    snapshots.append(session.messages)
    session.append_tool_result("c1", "result")
    snapshots.append(session.messages)
    await session.advance()
    snapshots.append(session.messages)

    for earlier, later in zip(snapshots, snapshots[1:]):
        assert later[:len(earlier)] == earlier
        assert len(later) > len(earlier)
