"""Structured logging configuration using structlog.

Pipeline policies log through ``structlog.get_logger(__name__)``; this
module decides how those events are rendered. Production renders JSON
lines, development renders colored console output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from storage_pipeline.config import settings

# Event keys whose values must never reach a log sink verbatim.
REDACTED_KEYS = frozenset({"authorization", "token", "access_token", "x-ms-encryption-key"})
REDACTED = "REDACTED"


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every event with the emitting library and its version."""
    event_dict["app"] = settings.APP_NAME
    event_dict["version"] = settings.APP_VERSION
    return event_dict


def redact_secrets(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace credential-bearing fields (top level and one dict deep)."""
    for key, value in list(event_dict.items()):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: (REDACTED if str(k).lower() in REDACTED_KEYS else v)
                for k, v in value.items()
            }
    return event_dict


def configure_logging(log_level: str | None = None, environment: str | None = None) -> None:
    """Configure structlog for the pipeline.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            defaults to settings.LOG_LEVEL
        environment: "production" renders JSON, anything else renders console;
            defaults to settings.ENVIRONMENT
    """
    log_level = log_level or settings.LOG_LEVEL
    environment = environment or settings.ENVIRONMENT
    level = getattr(logging, log_level.upper(), logging.INFO)
    production = environment.lower() == "production"

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        redact_secrets,
    ]

    renderer: Any
    if production:
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=processors)
    )
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every request at INFO; the log policy already covers that
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "Logging configured",
        log_level=log_level,
        environment=environment,
        renderer="json" if production else "console",
    )
