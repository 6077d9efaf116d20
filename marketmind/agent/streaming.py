"""
Streamed Response Accumulation
==============================

In streaming mode the backend sends a response as a series of deltas:

    delta.content       -> a text fragment
    delta.tool_calls[]  -> fragments of tool calls, keyed by `index`

A single tool call is usually split across many chunks: the first carries
the id and function name, later ones carry slices of the JSON arguments.
Fragments for the same index are concatenated in arrival order; id, name
and arguments are each appended independently.
A fragment without an index continues the last call unless it carries an
id, in which case it opens the next one.

The accumulation is a pure reducer over immutable state, so it can be
tested without any network transport:

    state = StreamState()
    for chunk in chunks:
        state = apply_delta(state, chunk.choices[0].delta)
    response = finalize(state)
"""

from dataclasses import dataclass, field, replace
from typing import Any

from marketmind.agent.messages import ChatResponse, ToolCallRequest


@dataclass(frozen=True)
class PartialToolCall:
    """A tool call still being assembled from fragments."""
    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass(frozen=True)
class StreamState:
    """Everything received so far for one streamed response."""
    content: str = ""
    tool_calls: dict[int, PartialToolCall] = field(default_factory=dict)


def _get(obj: Any, name: str) -> Any:
    # SDK delta objects and plain dicts are both accepted
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def merge_tool_call_fragment(partial: PartialToolCall, fragment: Any) -> PartialToolCall:
    """Append one fragment's id, name and arguments to a partial tool call."""
    function = _get(fragment, "function")
    return replace(
        partial,
        id=partial.id + (_get(fragment, "id") or ""),
        name=partial.name + ((_get(function, "name") or "") if function is not None else ""),
        arguments=partial.arguments + ((_get(function, "arguments") or "") if function is not None else ""),
    )


def apply_delta(state: StreamState, delta: Any) -> StreamState:
    """
    Fold one streamed delta into the state.

    Args:
        state: State before the delta
        delta: A choice delta with optional `content` and `tool_calls`

    Returns:
        A new StreamState; the input state is left untouched
    """
    if delta is None:
        return state

    content = state.content + (_get(delta, "content") or "")

    fragments = _get(delta, "tool_calls") or []
    if not fragments:
        return replace(state, content=content)

    tool_calls = dict(state.tool_calls)
    for fragment in fragments:
        index = _get(fragment, "index")
        if index is None:
            # without an index, only a fragment carrying an id opens a new call
            if tool_calls and not _get(fragment, "id"):
                index = max(tool_calls)
            else:
                index = max(tool_calls) + 1 if tool_calls else 0
        partial = tool_calls.get(index) or PartialToolCall(index=index)
        tool_calls[index] = merge_tool_call_fragment(partial, fragment)

    return StreamState(content=content, tool_calls=tool_calls)


def finalize(state: StreamState) -> ChatResponse:
    """
    Turn the accumulated state into a complete response.

    Tool calls are ordered by index; empty argument strings become "{}".
    """
    tool_calls = [
        ToolCallRequest(id=p.id, name=p.name, arguments=p.arguments or "{}")
        for _, p in sorted(state.tool_calls.items())
    ]
    return ChatResponse(content=state.content, tool_calls=tool_calls)
