"""Value objects exchanged between the fiscal services and their collaborators."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from src.core.constants import DEFAULT_WEBHOOK_ERROR_MESSAGE
from src.domain.fiscal.tomador import Tomador


class InvoiceStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    AUTHORIZED = "authorized"
    CANCELLED = "cancelled"
    ERROR = "error"


class TransactionType(StrEnum):
    SUBSCRIPTION = "subscription"
    CREDIT_PURCHASE = "credit_purchase"


class ServiceDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_brl: Decimal
    description: str
    item_lista_servico: str
    codigo_tributacao_municipio: str
    codigo_cnae: str


class TaxDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    iss_rate: Decimal
    iss_value: Decimal
    iss_retained: bool = False


class InvoiceSubmission(BaseModel):
    """Everything the tax API needs to issue one NFS-e."""

    model_config = ConfigDict(frozen=True)

    tomador: Tomador
    service: ServiceDetails
    taxes: TaxDetails
    external_reference: str
    notes: str | None = None


class CreatedInvoice(BaseModel):
    """Tax API answer to an issuance request."""

    reference: str
    status: InvoiceStatus
    nfse_number: str | None = None
    verification_code: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None


class InvoiceSnapshot(CreatedInvoice):
    """Current state of an invoice as reported by the tax API."""

    issued_at: datetime | None = None
    cancelled_at: datetime | None = None
    error_message: str | None = None


class CancelledInvoice(BaseModel):
    reference: str
    status: InvoiceStatus
    cancelled_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """A single state transition to apply to a stored invoice.

    ``None`` fields are left untouched. ``mark_issued`` and ``mark_cancelled``
    stamp ``issued_at``/``cancelled_at`` with the current time unless already
    set, so re-applying the same update keeps the first timestamp.
    """

    status: InvoiceStatus
    nfse_number: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None
    error_message: str | None = None
    cancellation_reason: str | None = None
    mark_issued: bool = False
    mark_cancelled: bool = False

    @classmethod
    def transition(
        cls,
        status: InvoiceStatus,
        *,
        nfse_number: str | None = None,
        pdf_url: str | None = None,
        xml_url: str | None = None,
        error_message: str | None = None,
        cancellation_reason: str | None = None,
    ) -> "StatusUpdate":
        """Build the update for a status reported by the tax authority.

        - ``authorized`` stamps ``issued_at`` and copies only the document
          fields that were reported.
        - ``error`` stores the reported message, or a generic one.
        - ``cancelled`` stamps ``cancelled_at``.
        - Any other status only changes ``status``.
        """
        if status is InvoiceStatus.AUTHORIZED:
            return cls(
                status=status,
                nfse_number=nfse_number or None,
                pdf_url=pdf_url or None,
                xml_url=xml_url or None,
                mark_issued=True,
            )
        if status is InvoiceStatus.ERROR:
            return cls(
                status=status,
                error_message=error_message or DEFAULT_WEBHOOK_ERROR_MESSAGE,
            )
        if status is InvoiceStatus.CANCELLED:
            return cls(
                status=status,
                cancellation_reason=cancellation_reason,
                mark_cancelled=True,
            )
        return cls(status=status)


@dataclass(frozen=True, slots=True)
class NewInvoice:
    """Row data for an invoice accepted by the tax API."""

    user_id: str
    tax_profile_id: int | None
    reference: str
    external_reference: str
    transaction_type: TransactionType
    status: InvoiceStatus
    product_name: str
    service_description: str
    value_brl: Decimal
    original_amount: Decimal
    original_currency: str
    exchange_rate: Decimal
    conversion_source: str
    rate_timestamp: datetime
    iss_rate: Decimal
    iss_value: Decimal
    customer_name: str | None
    customer_email: str
    customer_country: str
    customer_document: str | None
    processor_fees_brl: Decimal | None = None
    processor_net_brl: Decimal | None = None
    nfse_number: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None
    subscription_ref: str | None = None
    processor_invoice_ref: str | None = None
    charge_ref: str | None = None
    payment_intent_ref: str | None = None
