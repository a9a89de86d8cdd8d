"""Tables for customer tax profiles and issued fiscal invoices.

Money columns are ``NUMERIC(12, 2)`` and exchange rates ``NUMERIC(12, 6)``,
matching the precision used by the currency resolver. An invoice keeps its
tax profile alive: deleting a referenced profile is refused.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.fiscal.models import InvoiceStatus
from src.infrastructure.database.base import BaseModel


class TaxProfileModel(BaseModel):
    """One tax profile per user, Brazilian or foreign."""

    __tablename__ = "tax_profiles"

    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    country: Mapped[str] = mapped_column(String(2), nullable=False)
    is_brazilian: Mapped[bool] = mapped_column(Boolean, nullable=False)

    cpf_cnpj: Mapped[str | None] = mapped_column(String(14))
    nif: Mapped[str | None] = mapped_column(String(40))
    nif_exemption_code: Mapped[str | None] = mapped_column(String(10))
    full_name: Mapped[str | None] = mapped_column(String(255))

    address: Mapped[str | None] = mapped_column(String(255))
    number: Mapped[str | None] = mapped_column(String(20))
    complement: Mapped[str | None] = mapped_column(String(100))
    neighborhood: Mapped[str | None] = mapped_column(String(100))
    city: Mapped[str | None] = mapped_column(String(100))
    city_code: Mapped[str | None] = mapped_column(String(7))
    state: Mapped[str | None] = mapped_column(String(2))
    postal_code: Mapped[str | None] = mapped_column(String(20))
    inscricao_municipal: Mapped[str | None] = mapped_column(String(20))


class FiscalInvoiceModel(BaseModel):
    """An NFS-e accepted by the tax API, with its conversion audit data."""

    __tablename__ = "fiscal_invoices"
    __table_args__ = (
        Index("ix_fiscal_invoices_user_id_created_at", "user_id", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tax_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("tax_profiles.id", ondelete="RESTRICT"), index=True
    )

    reference: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    external_reference: Mapped[str] = mapped_column(
        String(150), unique=True, nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True
    )

    nfse_number: Mapped[str | None] = mapped_column(String(50))
    pdf_url: Mapped[str | None] = mapped_column(Text)
    xml_url: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    service_description: Mapped[str] = mapped_column(Text, nullable=False)
    value_brl: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    iss_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    iss_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    original_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    original_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    conversion_source: Mapped[str] = mapped_column(String(30), nullable=False)
    rate_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    processor_fees_brl: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    processor_net_brl: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    customer_name: Mapped[str | None] = mapped_column(String(255))
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_country: Mapped[str] = mapped_column(String(2), nullable=False)
    customer_document: Mapped[str | None] = mapped_column(String(40))

    subscription_ref: Mapped[str | None] = mapped_column(String(100))
    processor_invoice_ref: Mapped[str | None] = mapped_column(String(100))
    charge_ref: Mapped[str | None] = mapped_column(String(100))
    payment_intent_ref: Mapped[str | None] = mapped_column(String(100))
