"""Core logging configuration for daogov.

Modules log through ``logging.getLogger(__name__)``; this module wires the
``daogov`` logger hierarchy to handlers and formatters from a ``LogConfig``.
"""

import logging
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

ROOT_LOGGER_NAME = "daogov"


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_stdlib(self) -> int:
        """Map to the standard library level number."""
        return getattr(logging, self.value.upper())

    @classmethod
    def parse(cls, value: Any) -> "LogLevel":
        """Parse a level from an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown log level: {value}")


@dataclass
class LogConfig:
    """Log configuration."""

    name: str = ROOT_LOGGER_NAME
    level: LogLevel = LogLevel.INFO
    format_type: str = "json"
    handlers: List[str] = field(default_factory=lambda: ["console"])
    file_path: Optional[str] = None
    propagate: bool = False
    static_fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.level = LogLevel.parse(self.level)
        if self.format_type not in ("json", "text"):
            raise ValueError(f"Unsupported log format: {self.format_type}")
        if "file" in self.handlers and not self.file_path:
            raise ValueError("File handler requires file_path")


_lock = threading.RLock()
_installed: List[logging.Handler] = []


def _build_formatter(config: LogConfig) -> logging.Formatter:
    from .formatters import JSONFormatter, TextFormatter

    if config.format_type == "json":
        return JSONFormatter(static_fields=config.static_fields)
    return TextFormatter()


def setup_logging(config: Optional[LogConfig] = None) -> logging.Logger:
    """Setup logging with configuration.

    Calling it again replaces the handlers installed by the previous call.
    """
    config = config or LogConfig()
    with _lock:
        logger = logging.getLogger(config.name)
        for handler in _installed:
            logger.removeHandler(handler)
            handler.close()
        _installed.clear()

        formatter = _build_formatter(config)
        for handler_name in config.handlers:
            if handler_name == "console":
                handler = logging.StreamHandler(sys.stderr)
            elif handler_name == "file":
                handler = logging.FileHandler(config.file_path, encoding="utf-8")
            else:
                raise ValueError(f"Unknown log handler: {handler_name}")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            _installed.append(handler)

        logger.setLevel(config.level.to_stdlib())
        logger.propagate = config.propagate
        return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger inside the daogov hierarchy."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """Remove handlers installed by ``setup_logging`` and hand records back to the root logger."""
    with _lock:
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in _installed:
            logger.removeHandler(handler)
            handler.close()
        _installed.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
