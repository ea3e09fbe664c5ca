"""Structured logging setup utilities."""

from __future__ import annotations

import logging
from typing import Iterable

import structlog


def configure_logging(
    handlers: Iterable[logging.Handler] | None = None,
    *,
    level: int = logging.INFO,
    json: bool = True,
) -> None:
    """Configure stdlib logging and structlog.

    JSON output is the default; ``json=False`` switches to the console renderer
    for interactive sessions.
    """

    if handlers is None:
        handlers = [logging.StreamHandler()]

    logging.basicConfig(
        level=level,
        handlers=list(handlers),
        format="%(message)s",
    )

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
