"""Capabilities the fiscal services depend on.

Implementations live in ``src.infrastructure``; tests substitute in-memory
fakes.
"""

from datetime import date
from typing import Protocol

from src.domain.fiscal.currency import DailyRate, Settlement
from src.domain.fiscal.models import (
    CancelledInvoice,
    CreatedInvoice,
    InvoiceSnapshot,
    InvoiceSubmission,
    NewInvoice,
    StatusUpdate,
)
from src.domain.fiscal.tax_profile import Municipality, TaxProfile


class SettlementLookup(Protocol):
    async def get_settlement(self, reference: str) -> Settlement | None:
        """Settlement for a charge or payment intent, ``None`` when there is none."""
        ...


class DailyRateLookup(Protocol):
    async def get_daily_rate(self, currency: str, day: date) -> DailyRate | None:
        """Official quote for ``day``, ``None`` when none was published."""
        ...


class MunicipalityDirectory(Protocol):
    async def list_municipalities(self, state_code: str) -> list[Municipality]:
        """Municipalities of a state, as published by IBGE."""
        ...


class TaxApiClient(Protocol):
    async def create_invoice(self, submission: InvoiceSubmission) -> CreatedInvoice:
        ...

    async def get_invoice(self, reference: str) -> InvoiceSnapshot:
        ...

    async def cancel_invoice(
        self, reference: str, code: str, reason: str
    ) -> CancelledInvoice:
        ...


class TaxProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> TaxProfile | None:
        ...


class InvoiceStore(Protocol):
    async def find_id_by_external_reference(
        self, external_reference: str
    ) -> int | None:
        ...

    async def add(self, invoice: NewInvoice) -> int:
        """Persist a new invoice and return its id."""
        ...

    async def apply_status_update(self, reference: str, update: StatusUpdate) -> bool:
        """Apply ``update`` in one statement; ``False`` when no invoice matches."""
        ...
