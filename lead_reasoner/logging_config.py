"""
Structured logging for the reasoning engine.

structlog renders JSON in production and colored console output in
development. Every entry carries the ``trace_id`` of the current request
and, while a turn is being reasoned about, its ``lead_id`` and
``call_id`` so one lead's decisions can be followed across log lines.

Usage:
    from lead_reasoner.logging_config import get_logger, turn_context

    logger = get_logger(__name__)
    with turn_context(lead_id="abc123"):
        logger.info("reasoning_started", input_length=42)
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

import structlog

from lead_reasoner.config import Settings, get_settings

# ── Correlation IDs ──────────────────────────────────────────────
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
lead_id_var: ContextVar[str] = ContextVar("lead_id", default="")
call_id_var: ContextVar[str] = ContextVar("call_id", default="")

_CORRELATION_VARS = (
    ("trace_id", trace_id_var),
    ("lead_id", lead_id_var),
    ("call_id", call_id_var),
)

# Libraries that log every HTTP round trip at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3", "postgrest", "supabase")


def _add_correlation_ids(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    # Explicit keyword arguments win over the ambient context
    for key, var in _CORRELATION_VARS:
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def generate_trace_id() -> str:
    """Short random ID for correlating one request's log lines."""
    return uuid.uuid4().hex[:12]


@contextmanager
def turn_context(lead_id: Optional[str] = None, call_id: Optional[str] = None) -> Iterator[None]:
    """Attach a lead and call to every log line emitted inside the block."""
    tokens = []
    if lead_id:
        tokens.append((lead_id_var, lead_id_var.set(lead_id)))
    if call_id:
        tokens.append((call_id_var, call_id_var.set(call_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True)


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and route stdlib logging through the same renderer.

    Safe to call more than once; the root handler is replaced each time.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_correlation_ids,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
