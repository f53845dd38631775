"""Structured logging for the coordinator.

Every line goes to stdout, and also to ``LOG_FILE`` when set. Purge and
rewrite events carry their paths as key/value context, so the JSON format
is the one to ship to a collector.
"""

import sys
import structlog
import logging
from pathlib import Path
from typing import Any, List
from core.config import Settings


def _handlers(settings: Settings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    return handlers


def _processors(settings: Settings) -> List[Any]:
    if settings.log_format == "json":
        head = [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ]
        renderer = structlog.processors.JSONRenderer()
    else:
        head = [structlog.processors.TimeStamper(fmt="%H:%M:%S")]
        renderer = structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event=35,
            exception_formatter=structlog.dev.plain_traceback
        )

    return head + [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def configure_logging(settings: Settings) -> None:
    """Route stdlib and structlog output through the configured handlers."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handlers = _handlers(settings)
    for handler in handlers:
        handler.setLevel(level)

    # force: a reconfigure replaces the handlers of an earlier call
    logging.basicConfig(level=level, handlers=handlers, format="%(message)s", force=True)

    structlog.configure(
        processors=_processors(settings),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_purge_operation(logger: structlog.BoundLogger, operation: str,
                        path: str, **kwargs) -> None:
    """Record one purge step at debug level."""
    logger.debug(
        "Purge operation",
        operation=operation,
        path=str(path),
        **kwargs
    )
