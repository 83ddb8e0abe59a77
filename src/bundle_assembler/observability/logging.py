"""
bundle-assembler — structured logging setup

File: src/bundle_assembler/observability/logging.py
Last updated: 2026-10-18

Purpose
- Configure ``structlog`` for JSON-lines or console output with secret
  redaction, and bind per-request correlation fields.

Functional requirements
- Nothing is configured at import time; callers opt in via ``configure_logging``
  or ``configure_logging_from_config`` with a loaded bundler config.
- Sensitive keys and bearer/API-key shaped strings are redacted before rendering.

Non-functional requirements
- Logging never affects bundle content.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Any, Final, Literal

import structlog

from bundle_assembler.config.schema import assert_valid_config, default_config, merge_config

_REDACTED_VALUE: Final[str] = "***REDACTED***"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

LogFormat = Literal["json", "text"]


def configure_logging(
    *,
    level: int | str = "INFO",
    fmt: LogFormat = "json",
    redact_secrets: bool = True,
) -> None:
    """Configure structlog processors and the stdlib root handler."""

    numeric_level = _parse_log_level(level)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level, force=True)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if redact_secrets:
        processors.append(redact_event_dict)
    processors.append(structlog.processors.format_exc_info)
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def configure_logging_from_config(config: Mapping[str, Any] | None = None) -> None:
    """Apply the ``observability`` section of a (possibly partial) bundler config."""

    observability = assert_valid_config(merge_config(default_config(), config or {}))[
        "observability"
    ]
    configure_logging(
        level=observability["log_level"],
        fmt=observability["log_format"],
        redact_secrets=observability["redact_secrets"],
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind non-empty correlation fields (``session_id``, ``turn_id``...) for a block."""

    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def redact_event_dict(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: deep-redact secrets in an event dict."""

    for key in list(event_dict):
        event_dict[key] = _redact_value(event_dict[key], key_context=key)
    return event_dict


def _redact_value(value: Any, *, key_context: str | None) -> Any:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, key_context=None) for item in value]
    if isinstance(value, Mapping):
        return {key: _redact_value(item, key_context=str(key)) for key, item in value.items()}
    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    return _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValueError("log level must be an int or level name")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        resolved = logging.getLevelName(value.strip().upper())
        if isinstance(resolved, int):
            return resolved
    raise ValueError(f"unknown log level: {value!r}")


__all__ = [
    "LogFormat",
    "configure_logging",
    "configure_logging_from_config",
    "correlation_scope",
    "get_logger",
    "redact_event_dict",
]
