"""Fiscal endpoints: tax profiles, invoices and the tax authority webhook."""

from typing import Annotated

from fastapi import APIRouter, Header, Request, Response, status
from loguru import logger

from src.api.constants import FISCAL_PREFIX
from src.api.dependencies import (
    CurrentUser,
    Invoices,
    Issuer,
    Municipalities,
    Reconciler,
    TaxProfiles,
)
from src.api.schemas.fiscal import (
    BrazilianCity,
    BrazilianState,
    CancelInvoiceRequest,
    DocumentValidationResponse,
    InvoiceResponse,
    InvoiceStatusResponse,
    TaxProfileRequest,
    TaxProfileResponse,
    WebhookAck,
)
from src.core.constants import FISCAL_SIGNATURE_HEADER
from src.core.error_context import mask_document
from src.core.exceptions import NotFoundError, ValidationError
from src.domain.fiscal.tax_profile import (
    BRAZILIAN_STATES,
    check_document,
    validate_tax_profile,
)
from src.infrastructure.database.dependencies import DatabaseSession
from src.infrastructure.database.models import FiscalInvoiceModel

router = APIRouter(prefix=FISCAL_PREFIX, tags=["fiscal"])


async def _owned_invoice(
    invoices: Invoices,
    user_id: str,
    *,
    invoice_id: int | None = None,
    reference: str | None = None,
) -> FiscalInvoiceModel:
    invoice = await invoices.get_for_user(
        user_id, invoice_id=invoice_id, reference=reference
    )
    if invoice is None:
        raise NotFoundError(
            "Invoice not found",
            context={"invoice_id": invoice_id, "reference": reference},
        )
    return invoice


@router.get("/tax-profile", response_model=TaxProfileResponse)
async def get_tax_profile(user: CurrentUser, profiles: TaxProfiles) -> object:
    profile = await profiles.get_by_user_id(user.id)
    if profile is None:
        raise NotFoundError("Tax profile not found")
    return profile


@router.post("/tax-profile", response_model=TaxProfileResponse)
async def save_tax_profile(
    payload: TaxProfileRequest,
    user: CurrentUser,
    profiles: TaxProfiles,
    response: Response,
) -> object:
    """Create or replace the caller's tax profile.

    The profile must pass the same completeness check used before issuing an
    invoice. Returns 201 when the profile is created and 200 when replaced.
    """
    profile = payload.to_profile(user.id)
    validate_tax_profile(profile)

    stored, created = await profiles.upsert(profile)
    if created:
        response.status_code = status.HTTP_201_CREATED
    logger.info(
        "Tax profile saved",
        tax_profile_id=stored.id,
        created=created,
        is_brazilian=stored.is_brazilian,
        document=mask_document(stored.cpf_cnpj or stored.nif),
    )
    return stored


@router.get("/brazilian-states", response_model=list[BrazilianState])
async def list_brazilian_states() -> list[BrazilianState]:
    return [
        BrazilianState(code=code, name=name)
        for code, name in BRAZILIAN_STATES.items()
    ]


@router.get("/brazilian-cities/{state_code}", response_model=list[BrazilianCity])
async def list_brazilian_cities(
    state_code: str, municipalities: Municipalities
) -> list[BrazilianCity]:
    state = state_code.upper()
    if state not in BRAZILIAN_STATES:
        raise ValidationError(
            f"Unknown Brazilian state: {state_code}", context={"state": state_code}
        )
    return [
        BrazilianCity(id=city.id, name=city.name)
        for city in await municipalities.list_municipalities(state)
    ]


@router.get("/validate-document/{document}", response_model=DocumentValidationResponse)
async def validate_document(document: str) -> DocumentValidationResponse:
    result = check_document(document)
    return DocumentValidationResponse(
        valid=result.valid,
        type=result.type,
        formatted=result.formatted,
        message=result.message,
    )


@router.get("/invoices", response_model=list[InvoiceResponse])
async def list_invoices(user: CurrentUser, invoices: Invoices) -> object:
    return await invoices.list_for_user(user.id)


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: int, user: CurrentUser, invoices: Invoices) -> object:
    return await _owned_invoice(invoices, user.id, invoice_id=invoice_id)


@router.post("/invoices/{reference}/sync", response_model=InvoiceStatusResponse)
async def sync_invoice(
    reference: str,
    user: CurrentUser,
    invoices: Invoices,
    issuer: Issuer,
    db: DatabaseSession,
) -> InvoiceStatusResponse:
    """Poll the tax API and store the invoice's current status."""
    await _owned_invoice(invoices, user.id, reference=reference)
    snapshot = await issuer.sync_status(reference)
    await db.commit()
    return InvoiceStatusResponse.model_validate(snapshot, from_attributes=True)


@router.post("/invoices/{reference}/cancel", response_model=InvoiceStatusResponse)
async def cancel_invoice(
    reference: str,
    payload: CancelInvoiceRequest,
    user: CurrentUser,
    invoices: Invoices,
    issuer: Issuer,
    db: DatabaseSession,
) -> InvoiceStatusResponse:
    await _owned_invoice(invoices, user.id, reference=reference)
    result = await issuer.cancel(reference, payload.reason, payload.code)
    await db.commit()
    return InvoiceStatusResponse(
        reference=result.reference,
        status=result.status,
        cancelled_at=result.cancelled_at,
    )


@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    reconciler: Reconciler,
    db: DatabaseSession,
    signature: Annotated[str | None, Header(alias=FISCAL_SIGNATURE_HEADER)] = None,
) -> WebhookAck:
    """Status notification from the tax authority.

    The body is authenticated before it is parsed. The update is committed
    before acknowledging, so a failure surfaces as a 500 and the sender
    retries.
    """
    body = await request.body()
    await reconciler.handle(body, signature)
    await db.commit()
    return WebhookAck()
