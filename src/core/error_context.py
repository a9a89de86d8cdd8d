"""Redaction helpers for logs and error responses.

Values are redacted by field name: a built-in pattern covers credentials and
Brazilian/foreign tax documents, and ``LogConfig.sensitive_fields`` adds
deployment-specific names. Headers are redacted by exact name. Documents that
must still be recognisable in logs are masked with ``mask_document`` instead.

Sanitization only affects the copies that are logged or returned; stored data
is never modified.
"""

from __future__ import annotations

import re
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from src.core.config import get_settings
from src.core.constants import REDACTED

type SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

SENSITIVE_HEADERS: Final[frozenset[str]] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "proxy-authorization",
        "x-api-key",
        "x-fiscal-signature",
        "stripe-signature",
    }
)

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|secret|token|api[_-]?key|apikey|authorization|"
    r"credential|private[_-]?key|signature|session|"
    r"cpf|cnpj|nif|card[_-]?number|cvv|cvc)",
    re.IGNORECASE,
)

MAX_DEPTH: Final[int] = 10
VISIBLE_DOCUMENT_DIGITS: Final[int] = 4


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> tuple[str, ...]:
    return tuple(f.lower() for f in get_settings().log_config.sensitive_fields)


def is_sensitive_field(field_name: str) -> bool:
    """Check a field name against the built-in pattern and configured names."""
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in _get_sensitive_fields())


def is_sensitive_header(header_name: str) -> bool:
    return header_name.lower() in SENSITIVE_HEADERS


def sanitize_value(
    value: SanitizableValue, field_name: str = "", depth: int = 0
) -> SanitizableValue:
    """Redact ``value`` when its field name is sensitive, recursing into containers.

    Nesting deeper than ``MAX_DEPTH`` is redacted wholesale.
    """
    if depth > MAX_DEPTH:
        return REDACTED
    if field_name and is_sensitive_field(field_name):
        return REDACTED
    if isinstance(value, dict):
        return {k: sanitize_value(v, k, depth + 1) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", depth + 1) for item in value)
    return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    return {k: REDACTED if is_sensitive_header(k) else v for k, v in headers.items()}


def sanitize_error_context(
    error: Exception, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Build a log-safe description of ``error`` plus optional extra context.

    Public attributes of the exception are included under ``error_attributes``
    after sanitization.
    """
    error_context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        error_context.update(sanitize_dict(context))

    error_attrs = {
        k: v
        for k, v in getattr(error, "__dict__", {}).items()
        if not k.startswith("_") and k not in {"stack_trace", "cause"}
    }
    if error_attrs:
        error_context["error_attributes"] = sanitize_dict(error_attrs)
    return error_context


def mask_document(document: str | None) -> str | None:
    """Mask a CPF/CNPJ/NIF, keeping only its last digits.

    >>> mask_document("12345678901")
    '*******8901'
    """
    if not document:
        return document
    if len(document) <= VISIBLE_DOCUMENT_DIGITS:
        return "*" * len(document)
    hidden = len(document) - VISIBLE_DOCUMENT_DIGITS
    return "*" * hidden + document[hidden:]
