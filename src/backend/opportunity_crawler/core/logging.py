"""
structlog setup for the crawler.

Fetches, upserts and run summaries are logged as key/value events: JSON lines
when deployed, a colored console in development.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from opportunity_crawler.core.config import Settings, get_settings

# stdlib loggers whose per-request chatter duplicates our "Page fetched" events
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Run context bound with structlog.contextvars (run name, run id) is merged
    into every event emitted while a cron run is in progress.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *_renderer(settings.log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger, optionally with context already bound.

    Example:
        >>> logger = get_logger(__name__, run="discover")
        >>> logger.info("Source crawled", source_id="abc", urls=3)
    """
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


class LoggerMixin:
    """Gives workflow and client classes a `logger` bound to their class name."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)
