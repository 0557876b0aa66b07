"""Structured logging setup using structlog, with configurable redaction."""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterable
from typing import Any

import structlog


REDACTED = "***REDACTED***"

DEFAULT_REDACT_KEYS: tuple[str, ...] = (
    "authorization",
    "cookie",
    "x-api-key",
    "api_key",
    "apikey",
    "password",
    "passwd",
    "secret",
    "token",
)

_SENSITIVE_PATTERNS = [
    re.compile(r"(token|key|secret|password|authorization)[\"']?\s*[:=]\s*[\"']?[\w\-\.]+", re.IGNORECASE),
]


def _mask_string(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        if pattern.search(value):
            value = pattern.sub(r"\1=" + REDACTED, value)
    return value


def _is_sensitive(key: Any, keys: frozenset[str]) -> bool:
    if not isinstance(key, str):
        return False
    lowered = key.lower()
    return any(name in lowered for name in keys)


def redact(value: Any, keys: frozenset[str]) -> Any:
    """Return a copy of ``value`` with sensitive entries masked.

    Dict entries whose key contains one of ``keys`` (case-insensitive) are
    replaced wholesale. Dicts and lists are walked recursively and plain
    strings have inline ``token=...`` style secrets masked.
    """
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(k, keys) else redact(v, keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v, keys) for v in value]
    if isinstance(value, str):
        return _mask_string(value)
    return value


def make_redactor(keys: Iterable[str]) -> structlog.types.Processor:
    """Build a structlog processor that redacts every event value."""
    lowered = frozenset(k.lower() for k in keys)

    def _redact_sensitive(
        _logger: structlog.types.WrappedLogger,
        _method: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        for key, value in list(event_dict.items()):
            if key == "event":
                continue
            if _is_sensitive(key, lowered):
                event_dict[key] = REDACTED
            else:
                event_dict[key] = redact(value, lowered)
        return event_dict

    return _redact_sensitive


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    redact_keys: Iterable[str] = DEFAULT_REDACT_KEYS,
) -> None:
    """Configure structlog with optional JSON output.

    An empty ``redact_keys`` disables redaction entirely.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    redact_keys = tuple(redact_keys)

    if not redact_keys:
        print(
            "WARNING: log redaction is disabled. Request headers and bodies "
            "will be logged verbatim. Do not use in production.",
            file=sys.stderr,
        )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if redact_keys:
        shared_processors.append(make_redactor(redact_keys))

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(default=str)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Quiet noisy libraries
    for name in ("pymongo", "asyncio"):
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
