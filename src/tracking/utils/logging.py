"""Logging configuration for the tracking domain.

A single stdout handler on the root logger; structlog renders key/value events
through it. ``ENV`` (falling back to ``PROTEAN_ENV``) picks the level and the
renderer, and ``LOG_LEVEL`` overrides the level.
"""

import logging
import os
import sys

import structlog

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}


def current_env() -> str:
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", _LEVELS.get(current_env(), "INFO"))


def configure_logging() -> None:
    env = current_env()
    level = get_log_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if env in ("production", "staging"):
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=env == "development",
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=4),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_sync_context(**kwargs) -> None:
    """Tag every later log line in this context, e.g. with the delivery id."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_sync_context() -> None:
    structlog.contextvars.clear_contextvars()
