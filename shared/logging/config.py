from __future__ import annotations

import logging
import sys

import structlog

REQUEST_CONTEXT_KEYS = ("correlation_id", "user_id", "visitor_id", "agent_id", "method", "path")


def configure_logging(service_name: str, log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog on top of stdlib logging.

    Call once at startup. JSON lines in deployed environments, the console
    renderer for local development. ``service`` is bound for every entry.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)


def bind_request_context(correlation_id: str | None = None, **fields: object) -> None:
    """Bind per-request fields; ``None`` values are skipped."""
    values = {"correlation_id": correlation_id, **fields}
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    )


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
