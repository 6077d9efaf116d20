"""
Agent Core
==========

The agent owns a set of tool connectors and one chat session, and drives
the request / act / observe loop until the model stops asking for tools.

Agent Loop:
    User Prompt
         │
         ▼
    Model Turn (history + tool schemas)
         │
         ▼
    ┌─── Has Tool Calls? ───┐
    │                       │
    Yes                     No
    │                       │
    ▼                       ▼
    Execute Tools      Close Connectors
    │                  Return Text
    ▼
    Append Results
    │
    └──── next model turn (at most max_iterations rounds)

Lifecycle:
    IDLE ──init()──> INITIALIZING ──> RUNNING ──invoke()──> CLOSING ──> CLOSED

- init() connects every connector in registration order, then builds the
  chat session. Any failure closes whatever already connected, leaves the
  agent CLOSED and is re-raised; no chat session is created.
- invoke() runs one prompt and always closes the connectors on the way
  out, whether the loop finished, ran out of iterations or failed.
"""

from enum import Enum
from typing import Any, Sequence

from marketmind.agent.conversation import ChatSession
from marketmind.agent.messages import ChatResponse
from marketmind.agent.tools_executor import ToolExecutor
from marketmind.errors import AgentStateError
from marketmind.tools import ToolRegistry
from marketmind.tools.connector import ToolConnector
from marketmind.utils.logger import Logger, log_title

logger = Logger("Agent")


class AgentState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


class Agent:
    """
    Tool-calling agent over external tool processes.

    Example:
        agent = Agent(
            model="gpt-4o-mini",
            connectors=[fetch_connector, file_connector],
            system_prompt="You are a helpful AI agent.",
            context=retrieved_context,
        )
        await agent.init()
        answer = await agent.invoke("Fetch https://news.ycombinator.com and summarize it")
    """

    # Maximum tool execution rounds to prevent infinite loops
    MAX_TOOL_ITERATIONS = 10

    def __init__(
        self,
        model: str,
        connectors: Sequence[ToolConnector],
        system_prompt: str = "",
        context: str = "",
        max_iterations: int | None = None,
        stream: bool = False,
        client: Any = None,
        api_key: str | None = None,
        base_url: str | None = None,
        echo: bool = True,
    ):
        """
        Initialize the agent. Nothing is connected until init().

        Args:
            model: Chat model identifier
            connectors: Tool connectors, in registration order (first owner
                of a tool name wins)
            system_prompt: System prompt for the conversation
            context: Retrieval context injected before the first prompt
            max_iterations: Tool-call rounds before giving up
            stream: Use streamed backend responses
            client: AsyncOpenAI-compatible client (tests pass a scripted one)
            api_key: API key when no client is given
            base_url: OpenAI-compatible endpoint when no client is given
            echo: Write assistant text to stdout as it arrives
        """
        self.model = model
        self.connectors = list(connectors)
        self.system_prompt = system_prompt
        self.context = context
        self.max_iterations = max_iterations if max_iterations is not None else self.MAX_TOOL_ITERATIONS
        self.stream = stream
        self.echo = echo
        self._client = client
        self._api_key = api_key
        self._base_url = base_url

        self.state = AgentState.IDLE
        self.registry: ToolRegistry | None = None
        self.session: ChatSession | None = None
        self.executor: ToolExecutor | None = None

    async def init(self) -> None:
        """
        Connect every tool connector and create the chat session.

        Raises:
            AgentStateError: If the agent was already initialized
            ToolConnectionError: If any connector fails to connect
            openai.OpenAIError: If the chat client cannot be created
        """
        if self.state is not AgentState.IDLE:
            raise AgentStateError(f"Cannot initialize an agent in state '{self.state.value}'")

        log_title("init llm and tools")
        self.state = AgentState.INITIALIZING

        try:
            for connector in self.connectors:
                await connector.init()

            registry = ToolRegistry.from_connectors(self.connectors)
            session = ChatSession(
                model=self.model,
                system_prompt=self.system_prompt,
                tools=registry.get_all(),
                context=self.context,
                client=self._client,
                stream=self.stream,
                echo=self.echo,
                api_key=self._api_key,
                base_url=self._base_url,
            )
        except Exception as e:
            logger.error("Agent initialization failed, closing connectors", e)
            await self.close()
            raise

        self.registry = registry
        self.executor = ToolExecutor(registry)
        self.session = session
        self.state = AgentState.RUNNING
        logger.info(f"Agent initialized with model {self.model} and {len(self.registry)} tools")

    async def invoke(self, prompt: str) -> str:
        """
        Run the tool-calling loop for one prompt.

        Args:
            prompt: The user's request

        Returns:
            The model's final text ("" if it produced none)

        Raises:
            AgentStateError: If init() has not completed
            BackendError: If a chat completion fails
        """
        if self.state is not AgentState.RUNNING or self.session is None or self.executor is None:
            raise AgentStateError(f"Agent is not running (state '{self.state.value}'); call init() first")

        response: ChatResponse | None = None
        try:
            response = await self.session.advance(prompt)

            for iteration in range(self.max_iterations):
                if not response.has_tool_calls:
                    break

                logger.debug(f"Tool iteration {iteration + 1}")
                results = await self.executor.execute_all(response.tool_calls)
                for result in results:
                    self.session.append_tool_result(result.tool_call_id, result.content)

                response = await self.session.advance()
            else:
                if response.has_tool_calls:
                    logger.warning(f"Reached max tool iterations ({self.max_iterations})")
        finally:
            await self.close()

        return (response.content if response else "") or ""

    async def close(self) -> None:
        """
        Close every connector. Safe to call more than once; connector
        errors are logged and never raised.
        """
        if self.state in (AgentState.CLOSING, AgentState.CLOSED):
            return

        log_title("close tool connectors")
        self.state = AgentState.CLOSING
        for connector in self.connectors:
            try:
                await connector.close()
            except Exception as e:
                logger.warning(f"Error closing connector '{connector.name}': {e}")
        self.state = AgentState.CLOSED
