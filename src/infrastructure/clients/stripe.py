"""Settlement lookups against the Stripe REST API.

A charge is fetched with its balance transaction expanded; a payment intent
(``pi_`` references) with its latest charge's balance transaction. Amounts
arrive in minor units and are converted with the currency's exponent.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Final

import httpx
from loguru import logger

from src.core.exceptions import ExternalServiceError
from src.core.observability import trace_operation
from src.core.types import JsonObject
from src.domain.fiscal.currency import Settlement
from src.infrastructure.clients.http import MALFORMED_PAYLOAD_ERRORS
from src.infrastructure.constants import PAYMENT_PROCESSOR_CLIENT

PAYMENT_INTENT_PREFIX: Final[str] = "pi_"

# Currencies Stripe represents without a minor unit
ZERO_DECIMAL_CURRENCIES: Final[frozenset[str]] = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def from_minor_units(amount: int, currency: str) -> Decimal:
    """Convert a Stripe integer amount to major units.

    >>> from_minor_units(29700, "BRL")
    Decimal('297')
    >>> from_minor_units(500, "JPY")
    Decimal('500')
    """
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(amount)
    return Decimal(amount) / 100


def settlement_from_charge(charge: JsonObject) -> Settlement | None:
    """Build a settlement from a charge whose balance transaction is expanded."""
    balance = charge.get("balance_transaction")
    if not isinstance(balance, dict):
        return None

    currency = str(balance["currency"]).upper()
    original_currency = str(charge["currency"]).upper()
    created = balance.get("created")
    return Settlement(
        gross_amount=from_minor_units(balance["amount"], currency),
        fee=from_minor_units(balance["fee"], currency),
        net_amount=from_minor_units(balance["net"], currency),
        currency=currency,
        original_amount=from_minor_units(charge["amount"], original_currency),
        original_currency=original_currency,
        settled_at=datetime.fromtimestamp(created, tz=UTC) if created else None,
    )


class StripeSettlementClient:
    """``SettlementLookup`` backed by Stripe charges and payment intents."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def get_settlement(self, reference: str) -> Settlement | None:
        with trace_operation("payment_processor.get_settlement", reference=reference):
            if reference.startswith(PAYMENT_INTENT_PREFIX):
                intent = await self._retrieve(
                    f"/payment_intents/{reference}",
                    "latest_charge.balance_transaction",
                )
                charge = intent.get("latest_charge") if intent else None
            else:
                charge = await self._retrieve(
                    f"/charges/{reference}", "balance_transaction"
                )

        if not isinstance(charge, dict):
            logger.debug("No expanded charge for {}", reference)
            return None
        try:
            return settlement_from_charge(charge)
        except MALFORMED_PAYLOAD_ERRORS as e:
            raise ExternalServiceError(
                PAYMENT_PROCESSOR_CLIENT,
                f"Malformed charge {reference}: {type(e).__name__}",
                cause=e,
            ) from e

    async def _retrieve(self, path: str, expand: str) -> JsonObject | None:
        response = await self._client.get(path, params={"expand[]": expand})
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            raise ExternalServiceError(
                PAYMENT_PROCESSOR_CLIENT,
                f"Settlement lookup failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError(
                PAYMENT_PROCESSOR_CLIENT, f"Non-JSON body from {path}", cause=e
            ) from e
        if not isinstance(body, dict):
            raise ExternalServiceError(
                PAYMENT_PROCESSOR_CLIENT,
                f"Expected an object from {path}, got {type(body).__name__}",
            )
        return body
