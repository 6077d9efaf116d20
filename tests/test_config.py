from __future__ import annotations

from pathlib import Path

import pytest

from marketmind.errors import ConfigError
from marketmind.utils import config as config_module
from marketmind.utils.config import get_config, load_config, reset_config

ENV_VARS = [
    "OPENAI_API_KEY", "OPENAI_BASE_URL", "OPENAI_MODEL",
    "EMBEDDING_KEY", "EMBEDDING_BASE_URL", "EMBEDDING_MODEL",
    "KNOWLEDGE_DIR", "RAG_TOP_K",
    "AGENT_MAX_ITERATIONS", "AGENT_STREAM", "TOOL_TIMEOUT_SECONDS",
    "FINNHUB_API_KEY", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # keep a developer's .env out of the tests
    monkeypatch.setattr(config_module, "load_dotenv", lambda *a, **kw: False)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


def test_missing_api_key_raises(monkeypatch):
    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        load_config()


def test_defaults(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    config = load_config()

    assert config.openai.model == "gpt-4o-mini"
    assert config.openai.base_url is None
    assert config.embedding.model == "text-embedding-3-small"
    assert config.rag.top_k == 3
    assert config.rag.knowledge_dir == Path("knowledge").resolve()
    assert config.agent.max_iterations == 10
    assert config.agent.stream is False
    assert config.agent.tool_timeout_seconds == 30.0
    assert config.finnhub_api_key is None
    assert config.log_level == "info"


def test_embedding_settings_fall_back_to_chat_settings(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-chat")
    monkeypatch.setenv("OPENAI_BASE_URL", "https://llm.example.com/v1")

    config = load_config()

    assert config.embedding.api_key == "sk-chat"
    assert config.embedding.base_url == "https://llm.example.com/v1"


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-chat")
    monkeypatch.setenv("EMBEDDING_KEY", "sk-embed")
    monkeypatch.setenv("EMBEDDING_BASE_URL", "https://embed.example.com/v1")
    monkeypatch.setenv("KNOWLEDGE_DIR", str(tmp_path))
    monkeypatch.setenv("RAG_TOP_K", "5")
    monkeypatch.setenv("AGENT_MAX_ITERATIONS", "4")
    monkeypatch.setenv("AGENT_STREAM", "Yes")
    monkeypatch.setenv("TOOL_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("FINNHUB_API_KEY", "fh-key")

    config = load_config()

    assert config.embedding.api_key == "sk-embed"
    assert config.embedding.base_url == "https://embed.example.com/v1"
    assert config.rag.knowledge_dir == tmp_path.resolve()
    assert config.rag.top_k == 5
    assert config.agent.max_iterations == 4
    assert config.agent.stream is True
    assert config.agent.tool_timeout_seconds == 2.5
    assert config.finnhub_api_key == "fh-key"


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("RAG_TOP_K", "three")
    monkeypatch.setenv("TOOL_TIMEOUT_SECONDS", "soon")

    config = load_config()

    assert config.rag.top_k == 3
    assert config.agent.tool_timeout_seconds == 30.0


def test_get_config_is_cached_until_reset(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-one")
    first = get_config()
    monkeypatch.setenv("OPENAI_API_KEY", "sk-two")

    assert get_config() is first

    reset_config()
    assert get_config().openai.api_key == "sk-two"
