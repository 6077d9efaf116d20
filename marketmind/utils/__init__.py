"""
Utilities Module
================

Common utilities shared across the application:
- logger: Structured logging with levels and context
- config: Centralized configuration management
"""

from marketmind.utils.logger import Logger, log_title, logger
from marketmind.utils.config import get_config, reset_config, Config

__all__ = ["Logger", "log_title", "logger", "get_config", "reset_config", "Config"]
