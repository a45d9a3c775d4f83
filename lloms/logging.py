"""Logging configuration for LLoms."""

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from lloms.config import LoggingConfig


class _StderrWriter:
    """File-like target that looks up sys.stderr on every write."""

    def write(self, text: str) -> int:
        return sys.stderr.write(text)

    def flush(self) -> None:
        sys.stderr.flush()


def configure_logging(config: "LoggingConfig | None" = None, level: str | None = None) -> None:
    """Configure structured logging for LLoms.

    Logs go to stderr so they never interleave with streamed chat text.

    Args:
        config: Logging section of the loaded configuration
        level: Explicit level that wins over the config (e.g. from --verbose)
    """
    level_name = level or (config.level if config else "INFO")
    log_level = getattr(logging, level_name.upper(), logging.INFO)
    log_format = config.format if config else "console"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=_StderrWriter()),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance.

    Args:
        name: Optional logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
