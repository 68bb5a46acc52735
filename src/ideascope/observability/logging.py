"""Structured logging configuration using structlog.

Both structlog loggers and plain ``logging.getLogger(__name__)`` loggers are
rendered by the same structlog processor chain, so context bound with
``job_context`` (e.g. the running job id) appears on every record.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from ideascope.config.settings import ObservabilitySettings


def setup_logging(settings: ObservabilitySettings | None = None, *, level: str | None = None) -> None:
    """Configure structured logging for IdeaScope.

    Logs go to stderr so stdout stays free for command output.

    Args:
        settings: Observability settings. Uses defaults if None.
        level: Explicit level overriding ``settings.log_level``.
    """
    log_level = (level or getattr(settings, "log_level", "info")).upper()
    log_format = getattr(settings, "log_format", "json") if settings else "json"

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Any
    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level, logging.INFO))

    # Quiet chatty HTTP client loggers unless debugging
    if root.level > logging.DEBUG:
        for name in ("httpx", "httpcore", "openai"):
            logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def job_context(**values: Any) -> Iterator[None]:
    """Bind *values* (e.g. ``job_id``) to every log record emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
