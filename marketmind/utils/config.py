"""
Configuration Management
========================

Centralized configuration for the agent runtime. All environment variables
are read, validated and typed here, so the rest of the code never calls
os.getenv() directly.

Usage:
    from marketmind.utils.config import get_config

    config = get_config()
    print(config.openai.model)
    print(config.agent.max_iterations)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from marketmind.errors import ConfigError


def _required(name: str) -> str:
    """
    Get a required environment variable.

    Raises:
        ConfigError: If the variable is not set
    """
    value = os.getenv(name)
    if not value:
        raise ConfigError(
            f"Missing required environment variable: {name}\n"
            f"Please ensure {name} is set in your .env file."
        )
    return value


def _optional(name: str, default: str | None) -> str | None:
    """Get an optional environment variable with a default."""
    return os.getenv(name) or default


def _optional_int(name: str, default: int) -> int:
    """
    Get an optional integer environment variable.

    Args:
        name: The environment variable name
        default: Default value if not set or invalid

    Returns:
        The integer value or the default
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"Warning: {name} is not a valid integer, using default: {default}")
        return default


def _optional_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        print(f"Warning: {name} is not a valid number, using default: {default}")
        return default


def _optional_bool(name: str, default: bool) -> bool:
    """True if the value is 'true', '1' or 'yes' (case-insensitive)."""
    value = os.getenv(name)
    if not value:
        return default
    return value.lower() in ("true", "1", "yes")


# ==============================================================================
# Configuration Dataclasses
# ==============================================================================

@dataclass(frozen=True)
class OpenAIConfig:
    """Chat-completion backend configuration."""
    api_key: str
    base_url: str | None   # OpenAI-compatible endpoint, None for api.openai.com
    model: str


@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding service configuration."""
    api_key: str
    base_url: str | None
    model: str


@dataclass(frozen=True)
class RAGConfig:
    """Retrieval index configuration."""
    knowledge_dir: Path   # Every regular file here is a retrieval document
    top_k: int


@dataclass(frozen=True)
class AgentConfig:
    """Agent loop configuration."""
    max_iterations: int        # Tool-call rounds before the loop gives up
    stream: bool               # Streamed vs. blocking backend calls
    tool_timeout_seconds: float


@dataclass(frozen=True)
class Config:
    """
    Root configuration object.

    Access via:
        config = get_config()
        config.openai.model
        config.rag.knowledge_dir
    """
    openai: OpenAIConfig
    embedding: EmbeddingConfig
    rag: RAGConfig
    agent: AgentConfig
    finnhub_api_key: str | None
    log_level: str


def load_config() -> Config:
    """
    Load and validate all configuration from the environment.

    Loads the .env file first; values already present in the environment
    win over the file.

    Raises:
        ConfigError: If required configuration is missing
    """
    load_dotenv()

    api_key = _required("OPENAI_API_KEY")
    base_url = _optional("OPENAI_BASE_URL", None)

    return Config(
        openai=OpenAIConfig(
            api_key=api_key,
            base_url=base_url,
            model=_optional("OPENAI_MODEL", "gpt-4o-mini"),
        ),
        embedding=EmbeddingConfig(
            api_key=_optional("EMBEDDING_KEY", api_key),
            base_url=_optional("EMBEDDING_BASE_URL", base_url),
            model=_optional("EMBEDDING_MODEL", "text-embedding-3-small"),
        ),
        rag=RAGConfig(
            knowledge_dir=Path(_optional("KNOWLEDGE_DIR", "knowledge")).resolve(),
            top_k=_optional_int("RAG_TOP_K", 3),
        ),
        agent=AgentConfig(
            max_iterations=_optional_int("AGENT_MAX_ITERATIONS", 10),
            stream=_optional_bool("AGENT_STREAM", False),
            tool_timeout_seconds=_optional_float("TOOL_TIMEOUT_SECONDS", 30.0),
        ),
        finnhub_api_key=os.getenv("FINNHUB_API_KEY"),
        log_level=_optional("LOG_LEVEL", "info"),
    )


# ==============================================================================
# Singleton
# ==============================================================================

_config_instance: Config | None = None


def get_config() -> Config:
    """
    Get the singleton configuration instance.

    The configuration is loaded on first access and cached afterwards.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config_instance
    _config_instance = None
