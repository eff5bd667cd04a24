"""
structlog setup.

Every service logs one snake_case event per committed state change
(``message_request_sent``, ``content_hidden``, ...). ``RequestIdMiddleware``
binds ``request_id`` into the contextvars so those events can be tied back
to the HTTP call that caused them.
"""
import logging
import sys

import structlog

from townsquare.core.config import settings

# Loggers that drown out service events at INFO
_QUIET_LOGGERS = ("aiosqlite", "asyncio", "uvicorn.access")


def _add_app_name(logger, method_name, event_dict):
    event_dict.setdefault("app", settings.app_name)
    return event_dict


def setup_logging():
    """Configure structlog and route stdlib logging to stdout."""
    log_level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.DEBUG if settings.api_debug else logging.INFO
    as_json = settings.log_json if settings.log_json is not None else not settings.api_debug

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _add_app_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if as_json else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # SQL echo only when debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.api_debug else logging.WARNING
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
