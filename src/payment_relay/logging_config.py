"""structlog setup: one key=value line per event on stdout."""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from payment_relay.otel import current_trace_ids

# Endpoint secrets and signatures must never reach the log pipeline.
REDACTED_KEYS = frozenset({"secret", "signature", "x-webhook-signature", "authorization"})
REDACTED = "***"

_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"})


def _escape(value: Any) -> Any:
    return value.translate(_ESCAPES) if isinstance(value, str) else value


def redact_secrets_processor(logger, method_name, event_dict):
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(event_dict[key], dict):
            event_dict[key] = {
                k: REDACTED if str(k).lower() in REDACTED_KEYS else v
                for k, v in event_dict[key].items()
            }
    return event_dict


def add_trace_ids_processor(logger, method_name, event_dict):
    """Tag events emitted inside a delivery span with its trace/span ids."""
    for key, value in current_trace_ids().items():
        event_dict.setdefault(key, value)
    return event_dict


def replace_newlines_processor(logger, method_name, event_dict):
    """
    Escape control characters in string values, one level deep.
    Runs after format_exc_info so formatted tracebacks are covered too.
    """
    for key, value in event_dict.items():
        if isinstance(value, (list, tuple)):
            event_dict[key] = [_escape(item) for item in value]
        elif isinstance(value, dict):
            event_dict[key] = {k: _escape(v) for k, v in value.items()}
        else:
            event_dict[key] = _escape(value)
    return event_dict


class SingleLineFormatter(logging.Formatter):
    """Keeps stdlib records (aiohttp, asyncpg) on a single line too."""

    def format(self, record):
        return super().format(record).replace("\n", "\\n").replace("\r", "\\r")


def configure_logging(level: int | str = logging.INFO) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SingleLineFormatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # merchant calls show up in aiohttp.client; route it through the root handler
    for name in ("aiohttp.access", "aiohttp.client"):
        lib_logger = logging.getLogger(name)
        lib_logger.setLevel(level)
        lib_logger.propagate = True
        lib_logger.handlers = []

    # timestamp=... level=warning logger=payment_relay.services.dispatcher event="webhook delivery failed" delivery_id=...
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            add_trace_ids_processor,
            redact_secrets_processor,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            replace_newlines_processor,
            structlog.processors.KeyValueRenderer(
                key_order=["timestamp", "level", "logger", "event", "trace_id", "delivery_id"],
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
