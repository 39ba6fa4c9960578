"""
structlog setup shared by the server, the request pipeline and scripts.

Request logging is done by the development stage of the pipeline, so the
uvicorn access log is kept quiet. Values under credential-like keys never
reach a log line.
"""

import logging
import sys
from typing import Any

import structlog

from natours.config import Settings, settings as default_settings

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"password", "password_confirm", "passwordConfirm", "token", "jwt", "authorization"})


def redact_sensitive_values(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def configure_logging(settings: Settings = default_settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout, force=True)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    if settings.log_json:
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.is_development and sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
