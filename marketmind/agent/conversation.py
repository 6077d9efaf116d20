"""
Chat Session
============

Wraps the chat-completions backend and owns the conversation transcript.

The transcript is append-only. It starts with the system prompt and the
retrieval context (as a user turn), in that order, when they are given.
Each advance() then:

1. Optionally adds the user's prompt
2. Sends the whole transcript plus the tool schemas to the backend
3. Appends exactly one assistant turn with the text and tool calls
4. Returns them as a ChatResponse

After an advance() that produced tool calls, the caller appends one tool
result per call (append_tool_result) before advancing again.

Two delivery modes:
- blocking: one request, one complete response
- streaming: deltas accumulated client-side (see streaming.py); text
  fragments are echoed to stdout as they arrive

If the backend call fails, BackendError is raised and nothing (neither
the prompt nor a partial assistant turn) is appended.
"""

import sys
from typing import Any, Sequence

from openai import AsyncOpenAI

from marketmind.agent.messages import ChatResponse, Message, ToolCallRequest
from marketmind.agent.streaming import StreamState, apply_delta, finalize
from marketmind.errors import BackendError
from marketmind.tools import ToolDescriptor
from marketmind.utils.logger import Logger, log_title

logger = Logger("Chat")


class ChatSession:
    """
    One conversation with the chat-completions backend.

    Example:
        session = ChatSession(
            model="gpt-4o-mini",
            system_prompt="You are a market research assistant.",
            tools=registry.get_all(),
            context="AAPL closed at 189.84 on Friday.",
        )

        response = await session.advance("What's AAPL trading at?")
        for call in response.tool_calls:
            session.append_tool_result(call.id, "...")
        response = await session.advance()
    """

    def __init__(
        self,
        model: str,
        system_prompt: str = "",
        tools: Sequence[ToolDescriptor] = (),
        context: str = "",
        client: Any = None,
        stream: bool = False,
        echo: bool = True,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        """
        Initialize the session.

        Args:
            model: Chat model identifier
            system_prompt: Optional system prompt (first turn)
            tools: Tool descriptors advertised to the model
            context: Optional retrieval context (injected as a user turn)
            client: AsyncOpenAI-compatible client; built from api_key/base_url if omitted
            stream: Use streamed delivery instead of one blocking call
            echo: Write assistant text to stdout
            api_key: API key for the default client
            base_url: OpenAI-compatible endpoint for the default client
        """
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self.tools = list(tools)
        self.stream = stream
        self.echo = echo

        self._messages: list[Message] = []
        if system_prompt:
            self._messages.append(Message.system(system_prompt))
        if context:
            self._messages.append(Message.user(context))

    @property
    def messages(self) -> tuple[Message, ...]:
        """A read-only snapshot of the transcript."""
        return tuple(self._messages)

    def get_tools_definition(self) -> list[dict]:
        """Tool descriptors in OpenAI function-calling format."""
        return [tool.to_openai_function() for tool in self.tools]

    def _request_kwargs(self, messages: list[Message]) -> dict:
        kwargs: dict = {
            "model": self.model,
            "messages": [m.to_openai_message() for m in messages],
        }
        tools = self.get_tools_definition()
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def advance(self, prompt: str | None = None) -> ChatResponse:
        """
        Run one model turn.

        Args:
            prompt: Optional user message to add before calling the model

        Returns:
            ChatResponse with the assistant text and requested tool calls

        Raises:
            BackendError: If the backend call fails
        """
        log_title("chat")

        pending = list(self._messages)
        if prompt:
            pending.append(Message.user(prompt))

        kwargs = self._request_kwargs(pending)
        try:
            if self.stream:
                response = await self._complete_streaming(kwargs)
            else:
                response = await self._complete_blocking(kwargs)
        except Exception as e:
            logger.error("Chat completion failed", e)
            raise BackendError(f"Chat completion failed: {e}") from e

        log_title("response")

        pending.append(Message.assistant(response.content, response.tool_calls))
        self._messages = pending

        if response.tool_calls:
            logger.debug(f"Model requested {len(response.tool_calls)} tool call(s)")
        return response

    async def _complete_blocking(self, kwargs: dict) -> ChatResponse:
        completion = await self.client.chat.completions.create(**kwargs)
        message = completion.choices[0].message

        tool_calls = []
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            tool_calls.append(ToolCallRequest(
                id=call.id or "",
                name=function.name or "",
                arguments=function.arguments or "{}",
            ))

        content = message.content or ""
        if self.echo and content:
            sys.stdout.write(f"{content}\n")

        return ChatResponse(content=content, tool_calls=tool_calls)

    async def _complete_streaming(self, kwargs: dict) -> ChatResponse:
        stream = await self.client.chat.completions.create(**kwargs, stream=True)

        state = StreamState()
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            fragment = getattr(delta, "content", None)
            if self.echo and fragment:
                sys.stdout.write(fragment)
                sys.stdout.flush()
            state = apply_delta(state, delta)

        if self.echo and state.content:
            sys.stdout.write("\n")

        return finalize(state)

    def append_tool_result(self, tool_call_id: str, content: str) -> None:
        """
        Append a tool result turn.

        Args:
            tool_call_id: The id of the tool call this answers
            content: The tool output, already serialized to text
        """
        self._messages.append(Message.tool(tool_call_id, content))
