"""In-memory stand-ins for the fiscal services' collaborators, and sample rows."""

from dataclasses import asdict
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

from src.core.constants import SAO_PAULO_TZ
from src.domain.fiscal.currency import DailyRate, Settlement
from src.domain.fiscal.models import (
    CancelledInvoice,
    CreatedInvoice,
    InvoiceSnapshot,
    InvoiceStatus,
    InvoiceSubmission,
    NewInvoice,
    StatusUpdate,
    TransactionType,
)
from src.domain.fiscal.tax_profile import TaxProfile
from src.infrastructure.database.models import FiscalInvoiceModel, TaxProfileModel

FIXED_NOW = datetime(2025, 6, 4, 10, 30, tzinfo=ZoneInfo(SAO_PAULO_TZ))

VALID_CPF = "52998224725"
VALID_CNPJ = "11222333000181"

WEBHOOK_SECRET = "whsec_integration"
CREATED_AT = datetime(2025, 6, 4, 13, 30, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


def domestic_profile(**overrides: Any) -> TaxProfile:
    fields: dict[str, Any] = {
        "id": 1,
        "user_id": "u1",
        "country": "BR",
        "is_brazilian": True,
        "cpf_cnpj": VALID_CPF,
        "full_name": "Maria Silva",
        "address": "Avenida Paulista",
        "number": "1000",
        "complement": "Conjunto 12",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "city_code": "3550308",
        "state": "SP",
        "postal_code": "01310-100",
    }
    fields.update(overrides)
    return TaxProfile(**fields)


def foreign_profile(**overrides: Any) -> TaxProfile:
    fields: dict[str, Any] = {
        "id": 2,
        "user_id": "u2",
        "country": "us",
        "is_brazilian": False,
        "nif": "123-45-6789",
        "full_name": "John Doe",
        "address": "1 Market St",
        "city": "San Francisco",
        "postal_code": "94105",
    }
    fields.update(overrides)
    return TaxProfile(**fields)


def brl_settlement(
    gross: str, original: str, currency: str = "USD", fee: str = "0"
) -> Settlement:
    gross_amount = Decimal(gross)
    fee_amount = Decimal(fee)
    return Settlement(
        gross_amount=gross_amount,
        fee=fee_amount,
        net_amount=gross_amount - fee_amount,
        currency="BRL",
        original_amount=Decimal(original),
        original_currency=currency,
        settled_at=datetime(2025, 6, 3, 18, 0, tzinfo=UTC),
    )


class FakeSettlements:
    """Settlement lookup answering from a dict; exception values are raised."""

    def __init__(self, answers: dict[str, Settlement | Exception | None]) -> None:
        self.answers = answers
        self.calls: list[str] = []

    async def get_settlement(self, reference: str) -> Settlement | None:
        self.calls.append(reference)
        answer = self.answers.get(reference)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeDailyRates:
    """PTAX lookup answering from a dict keyed by day."""

    def __init__(
        self,
        quotes: dict[date, Decimal] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.quotes = quotes or {}
        self.error = error
        self.calls: list[tuple[str, date]] = []

    async def get_daily_rate(self, currency: str, day: date) -> DailyRate | None:
        self.calls.append((currency, day))
        if self.error is not None:
            raise self.error
        rate = self.quotes.get(day)
        if rate is None:
            return None
        quoted_at = datetime(
            day.year, day.month, day.day, 13, 4, tzinfo=ZoneInfo(SAO_PAULO_TZ)
        )
        return DailyRate(
            buy_rate=rate - Decimal("0.01"), sell_rate=rate, quoted_at=quoted_at
        )


class FakeTaxApi:
    """Tax API recording every call and answering with canned results."""

    def __init__(
        self,
        created: CreatedInvoice | None = None,
        snapshot: InvoiceSnapshot | None = None,
        error: Exception | None = None,
    ) -> None:
        self.created = created or CreatedInvoice(
            reference="R1", status=InvoiceStatus.PENDING
        )
        self.snapshot = snapshot
        self.error = error
        self.submissions: list[InvoiceSubmission] = []
        self.lookups: list[str] = []
        self.cancellations: list[tuple[str, str, str]] = []

    @property
    def call_count(self) -> int:
        return len(self.submissions) + len(self.lookups) + len(self.cancellations)

    async def create_invoice(self, submission: InvoiceSubmission) -> CreatedInvoice:
        self.submissions.append(submission)
        if self.error is not None:
            raise self.error
        return self.created

    async def get_invoice(self, reference: str) -> InvoiceSnapshot:
        self.lookups.append(reference)
        if self.error is not None:
            raise self.error
        assert self.snapshot is not None
        return self.snapshot

    async def cancel_invoice(
        self, reference: str, code: str, reason: str
    ) -> CancelledInvoice:
        self.cancellations.append((reference, code, reason))
        if self.error is not None:
            raise self.error
        return CancelledInvoice(
            reference=reference,
            status=InvoiceStatus.CANCELLED,
            cancelled_at=FIXED_NOW,
        )


class InMemoryProfiles:
    def __init__(self, *profiles: TaxProfile) -> None:
        self.profiles = {p.user_id: p for p in profiles}

    async def get_profile(self, user_id: str) -> TaxProfile | None:
        return self.profiles.get(user_id)


class InMemoryInvoices:
    """Invoice store applying status updates with first-write-wins timestamps."""

    def __init__(self, clock: Any = fixed_clock) -> None:
        self.rows: dict[int, dict[str, Any]] = {}
        self._clock = clock

    async def find_id_by_external_reference(
        self, external_reference: str
    ) -> int | None:
        for invoice_id, row in self.rows.items():
            if row["external_reference"] == external_reference:
                return invoice_id
        return None

    async def add(self, invoice: NewInvoice) -> int:
        return self.seed(invoice)

    async def apply_status_update(self, reference: str, update: StatusUpdate) -> bool:
        row = self.by_reference(reference)
        if row is None:
            return False
        row["status"] = update.status
        for field in (
            "nfse_number",
            "pdf_url",
            "xml_url",
            "error_message",
            "cancellation_reason",
        ):
            value = getattr(update, field)
            if value is not None:
                row[field] = value
        if update.mark_issued and row["issued_at"] is None:
            row["issued_at"] = self._clock()
        if update.mark_cancelled and row["cancelled_at"] is None:
            row["cancelled_at"] = self._clock()
        return True

    def by_reference(self, reference: str) -> dict[str, Any] | None:
        return next(
            (row for row in self.rows.values() if row["reference"] == reference),
            None,
        )

    def seed(self, invoice: NewInvoice, **state: Any) -> int:
        """Insert a row, overriding any of its columns with ``state``."""
        invoice_id = len(self.rows) + 1
        row = asdict(invoice)
        row.update(
            error_message=None,
            cancellation_reason=None,
            issued_at=None,
            cancelled_at=None,
        )
        row.update(state)
        self.rows[invoice_id] = row
        return invoice_id


def new_invoice(**overrides: Any) -> NewInvoice:
    fields: dict[str, Any] = {
        "user_id": "u1",
        "tax_profile_id": 1,
        "reference": "R1",
        "external_reference": "user_u1_sub_sub_1",
        "transaction_type": TransactionType.SUBSCRIPTION,
        "status": InvoiceStatus.PENDING,
        "product_name": "Pro",
        "service_description": "Serviço: Pro",
        "value_brl": Decimal("297.00"),
        "original_amount": Decimal("55"),
        "original_currency": "USD",
        "exchange_rate": Decimal("5.40"),
        "conversion_source": "official_rate",
        "rate_timestamp": FIXED_NOW,
        "iss_rate": Decimal("2.00"),
        "iss_value": Decimal("5.94"),
        "customer_name": "Maria Silva",
        "customer_email": "maria@example.com",
        "customer_country": "BR",
        "customer_document": VALID_CPF,
        "subscription_ref": "sub_1",
    }
    fields.update(overrides)
    return NewInvoice(**fields)


def stored_profile(**overrides: Any) -> TaxProfileModel:
    """A persisted-looking tax profile row; defaults to ``domestic_profile``."""
    fields = domestic_profile(**overrides).model_dump()
    profile_id = fields.pop("id")
    row = TaxProfileModel(**fields)
    row.id = profile_id
    row.created_at = CREATED_AT
    row.updated_at = CREATED_AT
    return row


def stored_invoice(invoice_id: int = 1, **overrides: Any) -> FiscalInvoiceModel:
    row = FiscalInvoiceModel(**asdict(new_invoice(**overrides)))
    row.id = invoice_id
    row.created_at = CREATED_AT
    row.updated_at = CREATED_AT
    row.issued_at = FIXED_NOW if row.status == InvoiceStatus.AUTHORIZED else None
    return row
