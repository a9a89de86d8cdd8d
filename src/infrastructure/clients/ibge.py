"""Municipality listings from the IBGE localities API."""

from typing import Final

import httpx
from loguru import logger

from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.core.types import JsonObject
from src.domain.fiscal.tax_profile import Municipality
from src.infrastructure.clients.http import MALFORMED_PAYLOAD_ERRORS
from src.infrastructure.constants import IBGE_CLIENT

MUNICIPALITIES_PATH: Final[str] = "/estados/{state_code}/municipios"


def parse_municipalities(payload: list[JsonObject]) -> list[Municipality]:
    """Map IBGE entries to municipalities, ids as strings.

    >>> parse_municipalities([{"id": 3550308, "nome": "São Paulo"}])
    [Municipality(id='3550308', name='São Paulo')]
    """
    return [Municipality(id=str(entry["id"]), name=entry["nome"]) for entry in payload]


class IbgeClient:
    """``MunicipalityDirectory`` against servicodados.ibge.gov.br."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def list_municipalities(self, state_code: str) -> list[Municipality]:
        path = MUNICIPALITIES_PATH.format(state_code=state_code)
        with trace_operation("ibge.list_municipalities", state=state_code) as span:
            try:
                response = await self._client.get(path)
            except httpx.HTTPError as e:
                logger.warning(
                    "IBGE lookup for {} failed: {}", state_code, type(e).__name__
                )
                raise ExternalServiceError(
                    IBGE_CLIENT, "IBGE localities service unreachable", cause=e
                ) from e
            span.set_attribute("http.status_code", response.status_code)

        if response.is_error:
            raise ExternalServiceError(
                IBGE_CLIENT,
                f"IBGE lookup failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
            if not isinstance(body, list):
                msg = f"expected a list, got {type(body).__name__}"
                raise TypeError(msg)
            return parse_municipalities(body)
        except MALFORMED_PAYLOAD_ERRORS as e:
            raise ExternalServiceError(
                IBGE_CLIENT,
                f"Malformed IBGE response: {type(e).__name__}",
                cause=e,
            ) from e
