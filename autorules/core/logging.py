"""structlog setup shared by the API process and the worker."""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from autorules.core.config import get_settings

# Chatty third-party loggers that only matter at DEBUG
_NOISY_LOGGERS = ("aio_pika", "aiormq", "httpx", "httpcore", "aiogram")


def _renderers(debug: bool) -> list[Processor]:
    if debug:
        return [structlog.dev.ConsoleRenderer(colors=True)]
    return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def setup_logging() -> None:
    """Console output in debug mode, one JSON object per line otherwise.

    Values bound through ``TraceContext`` (execution id, rule id) are merged
    into every entry emitted inside the block.
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_renderers(settings.debug),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn and the client libraries log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    if not settings.debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger
