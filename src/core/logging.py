"""Loguru configuration for the service.

Two output formats are supported:

- **console**: colourised, human-readable lines with the bound context shown
  inline (development).
- **json**: one JSON object per line, serialized with orjson, suitable for any
  log collector (staging/production).

Standard-library loggers (uvicorn, sqlalchemy, httpx) are routed through
``InterceptHandler`` so every record shares the same sink and context.
Request-scoped context such as ``correlation_id`` is attached with
``logger.contextualize()`` by the request context middleware.
"""

from __future__ import annotations

import inspect
import logging
import sys
from typing import Any, Final, Protocol, cast

import orjson
from loguru import logger

from src.core.constants import REDACTED


class _LoggingState:
    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str: ...

    @property
    def log_formatter_type(self) -> str | None: ...

    @property
    def sensitive_fields(self) -> list[str]: ...


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool: ...

    @property
    def log_config(self) -> LogConfigProtocol: ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
CORRELATION_ID_DISPLAY_LENGTH: Final[int] = 8
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Shown first and highlighted in console output
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "correlation_id",
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "reference",
    "external_reference",
)

_NOISY_LOGGERS: Final[tuple[str, ...]] = ("httpcore", "hpack")


def _escape(value: object) -> str:
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str:
    if field == "correlation_id" and len(str(value)) > CORRELATION_ID_DISPLAY_LENGTH:
        value = str(value)[:CORRELATION_ID_DISPLAY_LENGTH]
    elif field == "duration_ms":
        value = f"{value}ms"
    elif field == "status_code":
        colour = {"2": "green", "3": "yellow"}.get(str(value)[:1], "red")
        return f"<{colour}>{_escape(value)}</{colour}>"
    return _escape(value)


def _format_extra_field(key: str, value: object, sensitive: set[str]) -> str:
    str_value = str(value)
    if key.lower() in sensitive:
        str_value = REDACTED
    elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
        str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    return f"{_escape(key)}={_escape(str_value)}"


def _make_console_formatter(sensitive_fields: list[str]) -> Any:
    sensitive = {field.lower() for field in sensitive_fields}

    def format_console_with_context(record: dict[str, Any]) -> str:
        """Render a record with its bound context inline."""
        try:
            extra = record.get("extra", {})
            context_parts = [
                f"[<yellow>{_format_priority_field(field, extra[field])}</yellow>]"
                for field in PRIORITY_FIELDS
                if extra.get(field) is not None
            ]
            context_parts.extend(
                f"[<dim>{_format_extra_field(key, value, sensitive)}</dim>]"
                for key, value in extra.items()
                if key not in PRIORITY_FIELDS
                and not key.startswith("_")
                and value is not None
            )

            parts = [
                "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green>",
                "<level>{level: <8}</level>",
                "<cyan>{name}:{function}:{line}</cyan>",
            ]
            if context_parts:
                parts.append(" ".join(context_parts))
            parts.append(_escape(record.get("message", "")))
            line = " | ".join(parts)
            if record.get("exception"):
                line += "\n{exception}"
            return line + "\n"
        except (AttributeError, TypeError, ValueError, KeyError):
            return DEFAULT_LOG_FORMAT + "\n"

    return format_console_with_context


def serialize_for_json(record: dict[str, Any]) -> bytes:
    """Serialize a Loguru record to a single JSON line."""
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    extra = {k: v for k, v in record.get("extra", {}).items() if not k.startswith("_")}
    log_entry.update(extra)

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return orjson.dumps(log_entry, default=str, option=orjson.OPT_APPEND_NEWLINE)


def _json_sink(message: object) -> None:
    record = getattr(message, "record", None)
    if record is None:
        return
    sys.stdout.buffer.write(serialize_for_json(record))
    sys.stdout.flush()


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru once for the process.

    Repeated calls are ignored so the API factory and the CLI entry point can
    both call it safely.
    """
    if _state.configured:
        return

    logger.remove()
    formatter_type = settings.log_config.log_formatter_type or "console"

    if formatter_type == "json":
        logger.add(
            _json_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=cast(
                "Any", _make_console_formatter(settings.log_config.sensitive_fields)
            ),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        log_level=settings.log_config.log_level,
    )
    _state.configured = True
