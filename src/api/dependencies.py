"""FastAPI dependencies wiring the fiscal services to their collaborators.

Every service is built per request from the request's database session and
the process-wide HTTP clients. Tests replace any of these with
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.api.schemas.fiscal import AuthenticatedUser
from src.core.config import Settings, get_settings
from src.core.exceptions import UnauthorizedError
from src.domain.fiscal.currency import CurrencyResolver
from src.domain.fiscal.issuer import InvoiceIssuer
from src.domain.fiscal.protocols import MunicipalityDirectory, TaxApiClient
from src.domain.fiscal.webhook import WebhookReconciler
from src.infrastructure.clients.fiscal_nacional import FiscalNacionalClient
from src.infrastructure.clients.http import get_http_client
from src.infrastructure.clients.ibge import IbgeClient
from src.infrastructure.clients.ptax import PtaxClient
from src.infrastructure.clients.stripe import StripeSettlementClient
from src.infrastructure.constants import (
    FISCAL_API_CLIENT,
    IBGE_CLIENT,
    PAYMENT_PROCESSOR_CLIENT,
    PTAX_CLIENT,
)
from src.infrastructure.database.dependencies import DatabaseSession
from src.infrastructure.database.repositories import (
    FiscalInvoiceRepository,
    TaxProfileRepository,
)

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_current_user(request: Request) -> AuthenticatedUser:
    """Identity set by the upstream authentication layer.

    Raises:
        UnauthorizedError: No authenticated user is attached to the request.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise UnauthorizedError("Authentication required")
    if isinstance(user, AuthenticatedUser):
        return user
    return AuthenticatedUser.model_validate(user)


def get_tax_profile_repository(db: DatabaseSession) -> TaxProfileRepository:
    return TaxProfileRepository(db)


def get_invoice_repository(db: DatabaseSession) -> FiscalInvoiceRepository:
    return FiscalInvoiceRepository(db)


def get_currency_resolver(settings: SettingsDep) -> CurrencyResolver:
    return CurrencyResolver(
        settings.currency_config,
        settlements=StripeSettlementClient(get_http_client(PAYMENT_PROCESSOR_CLIENT)),
        daily_rates=PtaxClient(get_http_client(PTAX_CLIENT)),
    )


def get_tax_api_client(settings: SettingsDep) -> TaxApiClient:
    return FiscalNacionalClient(
        get_http_client(FISCAL_API_CLIENT), settings.fiscal_config
    )


def get_municipality_directory() -> MunicipalityDirectory:
    return IbgeClient(get_http_client(IBGE_CLIENT))


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
TaxProfiles = Annotated[TaxProfileRepository, Depends(get_tax_profile_repository)]
Invoices = Annotated[FiscalInvoiceRepository, Depends(get_invoice_repository)]


def get_invoice_issuer(
    settings: SettingsDep,
    currency: Annotated[CurrencyResolver, Depends(get_currency_resolver)],
    tax_api: Annotated[TaxApiClient, Depends(get_tax_api_client)],
    profiles: TaxProfiles,
    invoices: Invoices,
) -> InvoiceIssuer:
    return InvoiceIssuer(currency, tax_api, profiles, invoices, settings.fiscal_config)


def get_webhook_reconciler(
    settings: SettingsDep, invoices: Invoices
) -> WebhookReconciler:
    secret = settings.fiscal_config.webhook_secret
    return WebhookReconciler(invoices, secret.get_secret_value() if secret else None)


Issuer = Annotated[InvoiceIssuer, Depends(get_invoice_issuer)]
Reconciler = Annotated[WebhookReconciler, Depends(get_webhook_reconciler)]
Municipalities = Annotated[
    MunicipalityDirectory, Depends(get_municipality_directory)
]
