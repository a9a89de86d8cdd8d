"""Process-wide pool of named ``httpx.AsyncClient`` instances.

Each outbound service gets one client, created on first use with its base
URL, timeout and credentials, and closed on application shutdown.
"""

import threading
from collections.abc import Callable

import httpx
from loguru import logger

from src.core.config import get_settings
from src.core.context import RequestContext
from src.core.constants import CORRELATION_ID_HEADER
from src.infrastructure.constants import (
    FISCAL_API_CLIENT,
    IBGE_CLIENT,
    PAYMENT_PROCESSOR_CLIENT,
    PTAX_CLIENT,
)


# Raised while reading a 2xx body that is not the documented shape
MALFORMED_PAYLOAD_ERRORS: tuple[type[Exception], ...] = (
    ValueError,
    TypeError,
    KeyError,
    IndexError,
    AttributeError,
    ArithmeticError,
)


async def _propagate_correlation_id(request: httpx.Request) -> None:
    if correlation_id := RequestContext.get_correlation_id():
        request.headers.setdefault(CORRELATION_ID_HEADER, correlation_id)


def _build_fiscal_api_client() -> httpx.AsyncClient:
    config = get_settings().fiscal_config
    return httpx.AsyncClient(
        base_url=config.resolved_base_url,
        timeout=config.timeout_seconds,
        headers={"Authorization": f"Bearer {config.api_key.get_secret_value()}"},
        event_hooks={"request": [_propagate_correlation_id]},
    )


def _build_payment_processor_client() -> httpx.AsyncClient:
    config = get_settings().payment_processor_config
    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        auth=(config.api_key.get_secret_value(), ""),
    )


def _build_ptax_client() -> httpx.AsyncClient:
    config = get_settings().currency_config
    return httpx.AsyncClient(
        base_url=config.ptax_base_url,
        timeout=config.ptax_timeout_seconds,
        headers={"Accept": "application/json"},
    )


def _build_ibge_client() -> httpx.AsyncClient:
    config = get_settings().locality_config
    return httpx.AsyncClient(
        base_url=config.ibge_base_url,
        timeout=config.ibge_timeout_seconds,
        headers={"Accept": "application/json"},
    )


_FACTORIES: dict[str, Callable[[], httpx.AsyncClient]] = {
    FISCAL_API_CLIENT: _build_fiscal_api_client,
    PAYMENT_PROCESSOR_CLIENT: _build_payment_processor_client,
    PTAX_CLIENT: _build_ptax_client,
    IBGE_CLIENT: _build_ibge_client,
}


class _HttpClientManager:
    """Lazily-created clients shared by the process."""

    def __init__(self) -> None:
        self._clients: dict[str, httpx.AsyncClient] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> httpx.AsyncClient:
        client = self._clients.get(name)
        if client is None or client.is_closed:
            with self._lock:
                client = self._clients.get(name)
                if client is None or client.is_closed:
                    client = _FACTORIES[name]()
                    self._clients[name] = client
                    logger.debug("Created HTTP client {}", name)
        return client

    async def close(self) -> None:
        clients = list(self._clients.items())
        self._clients.clear()
        for name, client in clients:
            await client.aclose()
            logger.debug("Closed HTTP client {}", name)


_http_manager = _HttpClientManager()


def get_http_client(name: str) -> httpx.AsyncClient:
    """Return the shared client for ``name`` (one of the ``*_CLIENT`` constants)."""
    return _http_manager.get(name)


async def close_http_clients() -> None:
    """Close every open client; called on application shutdown."""
    await _http_manager.close()
