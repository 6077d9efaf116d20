"""
Error Taxonomy
==============

Fatal conditions are raised as the exceptions below. Recoverable ones
(a tool failing, a malformed argument string, an unknown tool name) never
leave the agent loop: they become tool-result text the model can react to.

    MarketMindError
    ├── ToolConnectionError   tool process could not be started / handshake failed
    ├── ToolProtocolError     tool process answered with an error or garbage
    ├── BackendError          chat-completion call failed
    ├── DimensionMismatchError  query and stored embedding lengths differ
    ├── AgentStateError       agent used outside its lifecycle
    └── ConfigError           required configuration missing
"""


class MarketMindError(Exception):
    """Base class for all errors raised by this package."""


class ToolConnectionError(MarketMindError, ConnectionError):
    """A tool process could not be started or did not complete its handshake."""

    def __init__(self, connector: str, message: str):
        super().__init__(f"[{connector}] {message}")
        self.connector = connector


class ToolProtocolError(MarketMindError, RuntimeError):
    """A tool process returned a JSON-RPC error or an unreadable message."""


class BackendError(MarketMindError):
    """The chat-completion backend call failed (network, auth, bad request)."""


class DimensionMismatchError(MarketMindError, ValueError):
    """A query embedding does not match the dimensionality of a stored one."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Vector dimensions do not match: stored embedding has {expected} "
            f"dimensions, query has {actual}"
        )
        self.expected = expected
        self.actual = actual


class AgentStateError(MarketMindError, RuntimeError):
    """An agent operation was called in the wrong lifecycle state."""


class ConfigError(MarketMindError, ValueError):
    """Required configuration is missing or invalid."""
