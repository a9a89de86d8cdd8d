"""Daily PTAX quotes from the Banco Central do Brasil OData service."""

from datetime import date, datetime
from decimal import Decimal
from typing import Final
from zoneinfo import ZoneInfo

import httpx

from src.core.constants import SAO_PAULO_TZ
from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.core.types import JsonObject
from src.domain.fiscal.currency import DailyRate
from src.infrastructure.clients.http import MALFORMED_PAYLOAD_ERRORS
from src.infrastructure.constants import PTAX_CLIENT

DAILY_QUOTE_PATH: Final[str] = (
    "/CotacaoMoedaDia(moeda=@moeda,dataCotacao=@dataCotacao)"
)


def parse_daily_quotes(payload: JsonObject) -> DailyRate | None:
    """Take the day's last bulletin, which is the closing PTAX.

    >>> parse_daily_quotes({"value": []}) is None
    True
    """
    quotes = payload.get("value") or []
    if not quotes:
        return None

    closing = quotes[-1]
    quoted_at = datetime.fromisoformat(closing["dataHoraCotacao"]).replace(
        tzinfo=ZoneInfo(SAO_PAULO_TZ)
    )
    return DailyRate(
        buy_rate=Decimal(str(closing["cotacaoCompra"])),
        sell_rate=Decimal(str(closing["cotacaoVenda"])),
        quoted_at=quoted_at,
    )


class PtaxClient:
    """``DailyRateLookup`` against the central bank's PTAX service."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_daily_rate(self, currency: str, day: date) -> DailyRate | None:
        params = {
            "@moeda": f"'{currency}'",
            "@dataCotacao": f"'{day:%m-%d-%Y}'",
            "$format": "json",
        }
        with trace_operation("ptax.get_daily_rate", currency=currency, day=str(day)):
            response = await self._client.get(DAILY_QUOTE_PATH, params=params)

        if response.is_error:
            raise ExternalServiceError(
                PTAX_CLIENT,
                f"PTAX lookup failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return parse_daily_quotes(response.json())
        except MALFORMED_PAYLOAD_ERRORS as e:
            raise ExternalServiceError(
                PTAX_CLIENT,
                f"Malformed PTAX response: {type(e).__name__}",
                cause=e,
            ) from e
