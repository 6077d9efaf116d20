"""
MarketMind - Tool-Calling Research Agent
========================================

A lightweight orchestration layer that lets a chat model call external
tools (market data, web fetch, filesystem) running as separate processes,
with semantic retrieval over a local knowledge directory.

This package provides:
- Agent loop with bounded tool-calling rounds
- Stdio tool connectors speaking the Model Context Protocol
- In-memory embedding index for background context
"""

__version__ = "1.0.0"
