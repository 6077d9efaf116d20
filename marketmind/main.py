"""
MarketMind - Main Entry Point
=============================

This is the main entry point. It:
1. Loads configuration
2. Builds the knowledge base from the knowledge directory (once)
3. Retrieves background context for the prompt
4. Starts the tool servers (fetch, filesystem, market data)
5. Runs the agent and prints its final answer

Run with:
    python -m marketmind.main "What is NVDA trading at?"

Or after installing:
    marketmind "Fetch https://news.ycombinator.com and save a summary to news.md"

Any unhandled failure prints the error and exits with status 1.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from marketmind.agent import Agent, ContextAssembler
from marketmind.rag import DirectoryIndexer, KnowledgeBase
from marketmind.tools.connector import ToolConnector
from marketmind.utils.config import Config, get_config
from marketmind.utils.logger import Logger

main_logger = Logger("Main")

SYSTEM_PROMPT = """You are a research assistant with access to tools:
- "fetch" retrieves a web page or API response by URL
- the filesystem tools read and write files on disk
- "get_stock_quote" and "compute_ohlcv_metrics" provide market data

Call a tool only when it is needed, and stop once the task is complete."""

DEFAULT_PROMPT = (
    "Use the fetch tool to get https://news.ycombinator.com/, "
    "summarize the top stories, and save the summary to {output}."
)


def build_connectors(config: Config, workdir: Path) -> list[ToolConnector]:
    """The tool servers available to the agent, in priority order."""
    timeout = config.agent.tool_timeout_seconds
    market_env = {"FINNHUB_API_KEY": config.finnhub_api_key} if config.finnhub_api_key else None

    return [
        ToolConnector("fetch", "uvx", ["mcp-server-fetch"], timeout=timeout),
        ToolConnector(
            "file",
            "npx",
            ["-y", "@modelcontextprotocol/server-filesystem", str(workdir)],
            timeout=timeout,
        ),
        ToolConnector(
            "market",
            sys.executable,
            ["-m", "marketmind.tools.servers.market"],
            env=market_env,
            timeout=timeout,
        ),
    ]


async def retrieve_context(config: Config, prompt: str) -> str:
    """Build the knowledge base once and retrieve context for the prompt."""
    knowledge_dir = config.rag.knowledge_dir
    knowledge_dir.mkdir(parents=True, exist_ok=True)

    knowledge_base = KnowledgeBase.from_config(config)
    await knowledge_base.build(DirectoryIndexer(knowledge_dir))

    assembler = ContextAssembler(knowledge_base, top_k=config.rag.top_k)
    return await assembler.assemble(prompt)


async def main(argv: list[str] | None = None) -> str:
    """
    Main async entry point.

    Returns:
        The agent's final answer
    """
    parser = argparse.ArgumentParser(prog="marketmind", description="Tool-calling research agent")
    parser.add_argument("prompt", nargs="?", help="What the agent should do")
    parser.add_argument("--no-rag", action="store_true", help="Skip knowledge base retrieval")
    parser.add_argument("--stream", action="store_true", help="Stream model output")
    args = parser.parse_args(argv)

    main_logger.info("Loading configuration...")
    config = get_config()

    workdir = Path.cwd()
    prompt = args.prompt or DEFAULT_PROMPT.format(output=workdir / "news.md")

    context = ""
    if not args.no_rag:
        main_logger.info("Retrieving context from knowledge base...")
        context = await retrieve_context(config, prompt)

    agent = Agent(
        model=config.openai.model,
        connectors=build_connectors(config, workdir),
        system_prompt=SYSTEM_PROMPT,
        context=context,
        max_iterations=config.agent.max_iterations,
        stream=args.stream or config.agent.stream,
        api_key=config.openai.api_key,
        base_url=config.openai.base_url,
    )
    await agent.init()
    return await agent.invoke(prompt)


def run():
    """
    Synchronous entry point.

    This is called when running with the `marketmind` command.
    """
    try:
        response = asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        main_logger.error("Agent run failed", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print("\nFinal Response:\n", response)


if __name__ == "__main__":
    run()
