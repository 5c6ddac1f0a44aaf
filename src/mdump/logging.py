"""Structured logging setup for the notes service."""

import logging
import sys

import structlog

# Loggers from third-party libraries routed through the root handler.
_FORWARDED_LOGGERS: tuple[str, ...] = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
)

# Chatty libraries kept at WARNING regardless of the service level.
_QUIET_LOGGERS: tuple[str, ...] = (
    "watchdog",
    "watchdog.observers.inotify_buffer",
    "sse_starlette.sse",
)


def configure_logging(debug: bool = False, json_output: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Production output is one JSON object per line on stdout. With
    json_output disabled, the human-friendly console renderer is used
    instead, which is handy when running the server by hand.

    Args:
        debug: Enable debug-level logging when True.
        json_output: Render events as JSON when True.
    """
    level = logging.DEBUG if debug else logging.INFO

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in _FORWARDED_LOGGERS:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
