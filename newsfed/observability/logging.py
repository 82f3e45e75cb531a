"""
Logging setup for newsfed.

Services log through structlog with keyword context (source_id, url,
outcome). The fetch pipeline below them uses plain ``logging`` loggers.
Both end up on one stdout handler rendered by structlog's
ProcessorFormatter: JSON lines in production, coloured console output
everywhere else.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from newsfed.config.settings import get_settings
from newsfed.observability.tracing import add_trace_context

# Chatty at INFO during every fetch
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        add_trace_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging() -> None:
    """
    Configure structlog and the root logger.

    Safe to call more than once; the root handler is replaced each time.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Source disabled", source_id="...", reason="permanent")
    """
    settings = get_settings()
    shared = _shared_processors()

    if settings.is_production:
        final: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
