"""
Logger Utility
==============

Context-aware, color-coded logging for the agent runtime.

Every module creates its own logger with a context name, so a single run
reads as a trace through the components:

    [2025-01-31T10:30:00] [INFO] [Connector:fetch] Connected with tools: ['fetch']
    [2025-01-31T10:30:01] [INFO] [Agent] Calling tool: fetch

Output rules:
- DEBUG / INFO / WARNING go to stdout, ERROR goes to stderr
- The threshold comes from the LOG_LEVEL environment variable
- Optional structured data is dumped as indented JSON under the line

Usage:
    from marketmind.utils.logger import Logger, log_title

    logger = Logger("Agent")
    logger.info("Starting loop")
    logger.warning("Tool not found", {"tool": "fetch"})

    log_title("init llm and tools")
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """
    Log levels with numeric values for comparison.
    Higher values = more severe = always shown.
    """
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    TITLE = "\033[1;96m"  # Bold bright cyan
    DIM = "\033[2m"


def _get_log_level_from_env() -> LogLevel:
    """
    Parse the LOG_LEVEL environment variable.

    Returns:
        LogLevel: The configured log level, defaults to INFO
    """
    level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    level_map = {
        "DEBUG": LogLevel.DEBUG,
        "INFO": LogLevel.INFO,
        "WARNING": LogLevel.WARNING,
        "WARN": LogLevel.WARNING,
        "ERROR": LogLevel.ERROR,
    }
    return level_map.get(level_str, LogLevel.INFO)


class Logger:
    """
    A context-aware logger with colored output.

    Example:
        logger = Logger("Connector")
        logger.info("Connecting")

        fetch_logger = logger.child("fetch")
        fetch_logger.debug("Spawned process", {"pid": 4242})
        # Logs show [Connector:fetch]
    """

    def __init__(self, context: str = ""):
        """
        Initialize a logger with an optional context.

        Args:
            context: A string prefix for all log messages (e.g., "Agent", "RAG")
        """
        self.context = context
        self._min_level = _get_log_level_from_env()

    def child(self, child_context: str) -> "Logger":
        """
        Create a child logger with additional context.

        Args:
            child_context: Additional context to append

        Returns:
            A new Logger with combined context
        """
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def _format_message(self, level: str, message: str, color: str) -> str:
        """
        Format a log message with timestamp, level, and context.

        Output format: [TIMESTAMP] [LEVEL] [context] message
        """
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level}]{Colors.RESET} "
            f"{context_str}{message}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if level < self._min_level:
            return

        formatted = self._format_message(level_name, message, color)

        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout
        print(formatted, file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message. Only shown when LOG_LEVEL=DEBUG."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """
        Log a warning message.

        Warnings mark recovered conditions: malformed tool arguments,
        unknown tools, an exhausted iteration budget.

        Args:
            message: The warning message
            data: Optional structured data to log
        """
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: BaseException | None = None) -> None:
        """
        Log an error message.

        Args:
            message: The error message
            error: Optional exception to include details from
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)


def log_title(title: str, width: int = 80) -> None:
    """
    Print a centered section banner, e.g. "===== CHAT =====".

    Banners mark the phases of a run (init, chat, response, close) and are
    shown at INFO level and below.
    """
    if _get_log_level_from_env() > LogLevel.INFO:
        return
    message = title.upper()
    padding = max(0, width - len(message) - 2)
    left = "=" * (padding // 2)
    right = "=" * (padding - padding // 2)
    print(f"{Colors.TITLE}{left} {message} {right}{Colors.RESET}")


# Default logger instance for general use
logger = Logger("MarketMind")
