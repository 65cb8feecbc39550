"""Logging configuration for the FR-Core HL7 bridge.

The dispatcher and the validator emit structlog events; builders and
handlers use plain ``logging.getLogger(__name__)`` loggers. Both go through
one ``ProcessorFormatter`` so a conversion renders as a single stream of
console or JSON lines.
"""

import logging
import sys
from typing import Any, List

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

from frcore_bridge.config import get_settings

# Processors applied to structlog events and stdlib records alike
SHARED_PROCESSORS: List[Any] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper()))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *SHARED_PROCESSORS,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_formatter() -> ProcessorFormatter:
    """Formatter rendering structlog events and stdlib records the same way."""
    return ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            render_processor(),
        ],
    )


def render_processor() -> Any:
    """Choose renderer based on configuration."""
    settings = get_settings()

    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    else:
        return structlog.dev.ConsoleRenderer()


def get_logger(name: str) -> BoundLogger:
    """Get a configured logger instance."""
    bound_logger: BoundLogger = structlog.get_logger(name)
    return bound_logger

