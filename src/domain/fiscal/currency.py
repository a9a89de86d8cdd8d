"""Conversion of captured payments to BRL for invoice valuation.

Sources are tried in a fixed order and the first that answers wins:

1. The payment processor's settlement record (charge, then payment intent).
   The implied rate is the settled BRL gross divided by the original amount.
2. The central bank PTAX sell rate, walking back one calendar day at a time
   (weekends, holidays) for at most ``CurrencyConfig.max_lookback_days``
   lookups.
3. A conservative per-currency fallback table from configuration.

A source that is missing, times out or answers garbage is exhausted, logged
and skipped; only the fallback table is guaranteed to answer. Every result
carries an audit line that is stored verbatim in the invoice description.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Final
from zoneinfo import ZoneInfo

import httpx
from loguru import logger

from src.core.constants import BRL, SAO_PAULO_TZ
from src.core.exceptions import ExternalServiceError, ValidationError
from src.core.observability import add_span_attributes, trace_operation

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.core.config import CurrencyConfig
    from src.domain.fiscal.protocols import DailyRateLookup, SettlementLookup

CENTS: Final[Decimal] = Decimal("0.01")
RATE_PRECISION: Final[Decimal] = Decimal("0.000001")

CURRENCY_SYMBOLS: Final[dict[str, str]] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "CAD": "C$",
    "AUD": "A$",
    "JPY": "¥",
    "CHF": "CHF",
    "BRL": "R$",
}

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")

# Failures that mean "this source is unavailable right now"
_SOURCE_ERRORS = (httpx.HTTPError, ExternalServiceError, ValueError, KeyError)


class ConversionSource(StrEnum):
    PROCESSOR_BALANCE = "processor_balance"
    OFFICIAL_RATE = "official_rate"
    FALLBACK_RATE = "fallback_rate"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS: Final[dict[ConversionSource, str]] = {
    ConversionSource.PROCESSOR_BALANCE: "Taxa de Conversão Stripe",
    ConversionSource.OFFICIAL_RATE: "Taxa PTAX (Banco Central)",
    ConversionSource.FALLBACK_RATE: "Taxa de Conversão Estimada",
}
_BRL_LABEL: Final[str] = "Pagamento em BRL, sem conversão"


@dataclass(frozen=True, slots=True)
class Settlement:
    """Processor balance record for a captured payment.

    ``gross_amount``, ``fee`` and ``net_amount`` are in ``currency`` (the
    settlement currency); ``original_amount`` is what the customer was charged
    in ``original_currency``.
    """

    gross_amount: Decimal
    fee: Decimal
    net_amount: Decimal
    currency: str
    original_amount: Decimal
    original_currency: str
    settled_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class DailyRate:
    buy_rate: Decimal
    sell_rate: Decimal
    quoted_at: datetime


@dataclass(frozen=True, slots=True)
class ConversionResult:
    amount_brl: Decimal
    original_amount: Decimal
    original_currency: str
    exchange_rate: Decimal
    source: ConversionSource
    rate_timestamp: datetime
    audit_text: str
    processor_fees_brl: Decimal | None = None
    processor_net_brl: Decimal | None = None


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def build_audit_text(
    amount: Decimal,
    currency: str,
    rate: Decimal,
    label: str,
    fees: Decimal | None = None,
) -> str:
    """Render the audit line stored in the invoice description.

    >>> build_audit_text(Decimal("55"), "USD", Decimal("5.4"), "PTAX")
    'Valor original: $55.00 - PTAX: R$ 5.4000'
    """
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    rate_4dp = rate.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    text = f"Valor original: {symbol}{to_cents(amount)} - {label}: R$ {rate_4dp}"
    if fees is not None and fees > 0:
        text += f" - Taxas operacionais: R$ {to_cents(fees)}"
    return text


def _now_in_sao_paulo() -> datetime:
    return datetime.now(ZoneInfo(SAO_PAULO_TZ))


class CurrencyResolver:
    """Resolve BRL values for payments, recording where the rate came from.

    Both lookups are optional; a resolver built without them goes straight to
    the fallback table for foreign currencies.
    """

    def __init__(
        self,
        config: CurrencyConfig,
        settlements: SettlementLookup | None = None,
        daily_rates: DailyRateLookup | None = None,
        clock: Callable[[], datetime] = _now_in_sao_paulo,
    ) -> None:
        self._config = config
        self._settlements = settlements
        self._daily_rates = daily_rates
        self._clock = clock

    async def convert(
        self,
        amount: Decimal,
        currency_code: str,
        charge_ref: str | None = None,
        payment_intent_ref: str | None = None,
    ) -> ConversionResult:
        """Convert ``amount`` of ``currency_code`` to BRL.

        Raises:
            ValidationError: If the currency code is not three letters or the
                amount is negative.
        """
        currency = currency_code.strip().upper()
        if not _CURRENCY_CODE.match(currency):
            raise ValidationError(
                f"Invalid currency code: {currency_code!r}",
                context={"currency": currency_code},
            )
        if amount < 0:
            raise ValidationError("Amount must not be negative")

        if currency == BRL:
            return self._identity(amount)

        with trace_operation("fiscal.currency.convert", currency=currency) as span:
            result = await self._from_processor(
                amount, currency, charge_ref, payment_intent_ref
            )
            if result is None:
                result = await self._from_official_rate(amount, currency)
            if result is None:
                result = self._from_fallback(amount, currency)
            span.set_attribute("conversion.source", result.source.value)

        logger.info(
            "Converted {} {} to BRL {} via {}",
            amount,
            currency,
            result.amount_brl,
            result.source.value,
            exchange_rate=str(result.exchange_rate),
        )
        return result

    def _identity(self, amount: Decimal) -> ConversionResult:
        return ConversionResult(
            amount_brl=amount,
            original_amount=amount,
            original_currency=BRL,
            exchange_rate=Decimal(1),
            source=ConversionSource.PROCESSOR_BALANCE,
            rate_timestamp=self._clock(),
            audit_text=build_audit_text(amount, BRL, Decimal(1), _BRL_LABEL),
            processor_fees_brl=Decimal("0.00"),
            processor_net_brl=amount,
        )

    async def _from_processor(
        self,
        amount: Decimal,
        currency: str,
        charge_ref: str | None,
        payment_intent_ref: str | None,
    ) -> ConversionResult | None:
        if self._settlements is None:
            return None

        for ref in (charge_ref, payment_intent_ref):
            if not ref:
                continue
            try:
                settlement = await self._settlements.get_settlement(ref)
            except _SOURCE_ERRORS as e:
                logger.warning(
                    "Settlement lookup failed for {}: {}",
                    ref,
                    type(e).__name__,
                    error=str(e),
                )
                continue

            if settlement is None:
                logger.info("No settlement record for {}", ref)
                continue
            if settlement.currency != BRL or settlement.original_amount <= 0:
                logger.info(
                    "Settlement for {} is not usable for BRL valuation",
                    ref,
                    settlement_currency=settlement.currency,
                )
                continue

            rate = (settlement.gross_amount / settlement.original_amount).quantize(
                RATE_PRECISION, rounding=ROUND_HALF_UP
            )
            fees = to_cents(settlement.fee)
            add_span_attributes(settlement_ref=ref)
            return ConversionResult(
                amount_brl=to_cents(settlement.gross_amount),
                original_amount=amount,
                original_currency=currency,
                exchange_rate=rate,
                source=ConversionSource.PROCESSOR_BALANCE,
                rate_timestamp=settlement.settled_at or self._clock(),
                audit_text=build_audit_text(
                    amount,
                    currency,
                    rate,
                    ConversionSource.PROCESSOR_BALANCE.label,
                    fees,
                ),
                processor_fees_brl=fees,
                processor_net_brl=to_cents(settlement.net_amount),
            )
        return None

    async def _from_official_rate(
        self, amount: Decimal, currency: str
    ) -> ConversionResult | None:
        if self._daily_rates is None:
            return None

        today: date = self._clock().date()
        for offset in range(self._config.max_lookback_days):
            day = today - timedelta(days=offset)
            try:
                quote = await self._daily_rates.get_daily_rate(currency, day)
            except _SOURCE_ERRORS as e:
                logger.warning(
                    "PTAX lookup failed for {} on {}: {}",
                    currency,
                    day.isoformat(),
                    type(e).__name__,
                    error=str(e),
                )
                return None

            if quote is None:
                continue

            rate = quote.sell_rate
            return ConversionResult(
                amount_brl=to_cents(amount * rate),
                original_amount=amount,
                original_currency=currency,
                exchange_rate=rate,
                source=ConversionSource.OFFICIAL_RATE,
                rate_timestamp=quote.quoted_at,
                audit_text=build_audit_text(
                    amount, currency, rate, ConversionSource.OFFICIAL_RATE.label
                ),
            )

        logger.info(
            "No PTAX quote for {} in the last {} days",
            currency,
            self._config.max_lookback_days,
        )
        return None

    def _from_fallback(self, amount: Decimal, currency: str) -> ConversionResult:
        rate = self._config.fallback_rates.get(
            currency, self._config.default_fallback_rate
        )
        logger.warning(
            "Using fallback rate for {}: {}",
            currency,
            rate,
            currency=currency,
            fallback_rate=str(rate),
        )
        return ConversionResult(
            amount_brl=to_cents(amount * rate),
            original_amount=amount,
            original_currency=currency,
            exchange_rate=rate,
            source=ConversionSource.FALLBACK_RATE,
            rate_timestamp=self._clock(),
            audit_text=build_audit_text(
                amount, currency, rate, ConversionSource.FALLBACK_RATE.label
            ),
        )
