"""Request and response models for the fiscal endpoints."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.domain.fiscal.models import InvoiceStatus
from src.domain.fiscal.tax_profile import DocumentType, TaxProfile, only_digits


class AuthenticatedUser(BaseModel):
    """Caller identity placed on ``request.state.user`` by the auth layer."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    email: str


class TaxProfileRequest(BaseModel):
    country: str = Field(..., min_length=2, max_length=2, examples=["BR", "US"])
    is_brazilian: bool
    cpf_cnpj: str | None = Field(default=None, examples=["123.456.789-09"])
    nif: str | None = None
    nif_exemption_code: str | None = None
    full_name: str | None = Field(default=None, max_length=255)
    address: str | None = None
    number: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    city_code: str | None = Field(default=None, examples=["3550308"])
    state: str | None = Field(default=None, examples=["SP"])
    postal_code: str | None = Field(default=None, examples=["01310-100"])
    inscricao_municipal: str | None = None

    @field_validator("country", "state", mode="after")
    @classmethod
    def upper_case(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else v

    @field_validator("cpf_cnpj", mode="after")
    @classmethod
    def strip_document_punctuation(cls, v: str | None) -> str | None:
        return only_digits(v) if v else None

    def to_profile(self, user_id: str) -> TaxProfile:
        return TaxProfile(user_id=user_id, **self.model_dump())


class TaxProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    country: str
    is_brazilian: bool
    cpf_cnpj: str | None
    nif: str | None
    nif_exemption_code: str | None
    full_name: str | None
    address: str | None
    number: str | None
    complement: str | None
    neighborhood: str | None
    city: str | None
    city_code: str | None
    state: str | None
    postal_code: str | None
    inscricao_municipal: str | None
    created_at: datetime
    updated_at: datetime


class BrazilianState(BaseModel):
    code: str = Field(..., examples=["SP"])
    name: str = Field(..., examples=["São Paulo"])


class BrazilianCity(BaseModel):
    id: str = Field(..., examples=["3550308"])
    name: str = Field(..., examples=["São Paulo"])


class DocumentValidationResponse(BaseModel):
    valid: bool
    type: DocumentType | None = None
    formatted: str | None = Field(default=None, examples=["123.456.789-09"])
    message: str | None = None


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reference: str
    external_reference: str
    transaction_type: str
    status: InvoiceStatus
    nfse_number: str | None
    pdf_url: str | None
    xml_url: str | None
    error_message: str | None
    cancellation_reason: str | None
    issued_at: datetime | None
    cancelled_at: datetime | None
    product_name: str
    service_description: str
    value_brl: Decimal
    iss_rate: Decimal
    iss_value: Decimal
    original_amount: Decimal
    original_currency: str
    exchange_rate: Decimal
    conversion_source: str
    rate_timestamp: datetime
    processor_fees_brl: Decimal | None
    processor_net_brl: Decimal | None
    created_at: datetime


class CancelInvoiceRequest(BaseModel):
    reason: str = Field(
        ...,
        min_length=15,
        max_length=255,
        description="Cancellation reason sent to the tax authority",
    )
    code: str | None = Field(
        default=None,
        description="Cancellation code; the configured default when omitted",
    )


class InvoiceStatusResponse(BaseModel):
    reference: str
    status: InvoiceStatus
    nfse_number: str | None = None
    pdf_url: str | None = None
    xml_url: str | None = None
    error_message: str | None = None
    cancelled_at: datetime | None = None


class WebhookAck(BaseModel):
    received: bool = True
