"""
Structured logging for dbhandles.

All registries and drivers log through structlog with event-style
messages (``connection_opened``, ``statement_still_active``) and
key/value context instead of formatted strings.

Manifesto:
    Handle caching is invisible when it works and baffling when it does
    not.  Every connect, reconnect, prepare and stale-handle recovery is
    logged as a structured event so the "why did this reconnect?" question
    has an answer in the log stream.

Configuration:
    dbhandles never configures structlog on import.  Until the application
    does, structlog's defaults apply and every event, ``debug`` included,
    is printed to stdout.  Call ``HandleSettings().configure_logging()``
    (or ``configure_logging()`` directly) once at startup; the default
    level is ``INFO`` and ``DBHANDLES_LOG_LEVEL`` overrides it.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="dbhandles")
            ↓
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars
          3. add_log_level / add_logger_name
          4. service metadata
          5. ECS field renaming (JSON only)
          6. JSONRenderer or ConsoleRenderer

Examples:
    >>> from dbhandles.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("connection_opened", name="main", data_source="dbi:SQLite:")

Tags:
    logging, structlog, observability, dbhandles

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "dbhandles"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Make field names Elasticsearch/ECS compatible."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")

    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")

    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "dbhandles",
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs

    Example:
        configure_logging(level="DEBUG", service="music-catalog")
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Attach ``kwargs`` to every event logged inside the block.

    The registries wrap connect, liveness probes and prepare in one, so
    events raised from driver code (``ping_failed``) say which handle they
    belong to.  Values bound by an outer block come back on exit.
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


__all__ = [
    "configure_logging",
    "get_logger",
    "log_context",
]
