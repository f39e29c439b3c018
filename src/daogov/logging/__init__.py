"""daogov logging.

Structured (JSON) and plain-text logging setup for the governance engine
and the CLI.
"""

from .core import LogConfig, LogLevel, get_logger, setup_logging, shutdown_logging
from .formatters import JSONFormatter, TextFormatter

__all__ = [
    "LogConfig",
    "LogLevel",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "JSONFormatter",
    "TextFormatter",
]
