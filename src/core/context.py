"""Request-scoped context (correlation and request ids) stored in contextvars."""

import uuid
from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestContext:
    """Async-safe accessors for the ids of the request being served.

    The correlation id may come from an upstream caller and span services; the
    request id is always generated locally.
    """

    @staticmethod
    def set_correlation_id(correlation_id: str) -> None:
        _correlation_id_var.set(correlation_id)

    @staticmethod
    def get_correlation_id() -> str | None:
        return _correlation_id_var.get()

    @staticmethod
    def set_request_id(request_id: str) -> None:
        _request_id_var.set(request_id)

    @staticmethod
    def get_request_id() -> str | None:
        return _request_id_var.get()

    @staticmethod
    def clear() -> None:
        """Reset all ids; called when a request finishes."""
        _correlation_id_var.set(None)
        _request_id_var.set(None)


def generate_correlation_id() -> str:
    """Return a new UUID4 string."""
    return str(uuid.uuid4())


def generate_request_id() -> str:
    """Return a new request id of the form ``req-<uuid4>``."""
    return f"req-{uuid.uuid4()}"
