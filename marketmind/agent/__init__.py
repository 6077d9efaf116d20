"""
Agent System
============

The agent is the brain of the runtime. It:
1. Receives a user prompt (plus retrieved background context)
2. Asks the model what to do next
3. Executes the tools the model asks for
4. Feeds the results back until the model answers

This module provides:
- Agent: Owns the connectors and runs the tool-calling loop
- ChatSession: Transcript + chat-completions backend
- ContextAssembler: Builds retrieval context for a prompt
- ToolExecutor: Runs one batch of tool calls
"""

from marketmind.agent.core import Agent, AgentState
from marketmind.agent.conversation import ChatSession
from marketmind.agent.context import ContextAssembler
from marketmind.agent.messages import ChatResponse, Message, Role, ToolCallRequest
from marketmind.agent.tools_executor import ToolExecutor

__all__ = [
    "Agent",
    "AgentState",
    "ChatSession",
    "ChatResponse",
    "ContextAssembler",
    "Message",
    "Role",
    "ToolCallRequest",
    "ToolExecutor",
]
