"""Shared fixtures for the HTTP integration tests.

Every test gets a fresh application built by ``create_app`` with tracing off,
served in-process through ``ASGITransport``. The database session and the
repositories are replaced by mocks; the middleware, exception handlers,
routing and the webhook reconciler are the real ones.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pytest_mock import MockerFixture, MockType
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_current_user,
    get_invoice_issuer,
    get_invoice_repository,
    get_municipality_directory,
    get_tax_profile_repository,
)
from src.api.main import create_app
from src.api.schemas.fiscal import AuthenticatedUser
from src.domain.fiscal.issuer import InvoiceIssuer
from src.infrastructure.clients.ibge import IbgeClient
from src.infrastructure.database.dependencies import get_db
from src.infrastructure.database.repositories import (
    FiscalInvoiceRepository,
    TaxProfileRepository,
)
from tests.fakes import WEBHOOK_SECRET

USER = AuthenticatedUser(id="u1", email="maria@example.com")


@pytest.fixture
def db_session(mocker: MockerFixture) -> MockType:
    return mocker.AsyncMock(spec=AsyncSession)


@pytest.fixture
def profile_repo(mocker: MockerFixture) -> MockType:
    repo = mocker.AsyncMock(spec=TaxProfileRepository)
    repo.get_by_user_id.return_value = None
    return repo


@pytest.fixture
def invoice_repo(mocker: MockerFixture) -> MockType:
    repo = mocker.AsyncMock(spec=FiscalInvoiceRepository)
    repo.get_for_user.return_value = None
    repo.list_for_user.return_value = []
    repo.apply_status_update.return_value = True
    return repo


@pytest.fixture
def issuer(mocker: MockerFixture) -> MockType:
    return mocker.AsyncMock(spec=InvoiceIssuer)


@pytest.fixture
def municipalities(mocker: MockerFixture) -> MockType:
    directory = mocker.AsyncMock(spec=IbgeClient)
    directory.list_municipalities.return_value = []
    return directory


@pytest.fixture
def app(
    clean_env: pytest.MonkeyPatch,
    mocker: MockerFixture,
    db_session: MockType,
    profile_repo: MockType,
    invoice_repo: MockType,
    issuer: MockType,
    municipalities: MockType,
) -> FastAPI:
    """Application with mocked persistence and an authenticated caller."""
    clean_env.setenv("OBSERVABILITY_CONFIG__ENABLE_TRACING", "false")
    clean_env.setenv("FISCAL_CONFIG__WEBHOOK_SECRET", WEBHOOK_SECRET)
    mocker.patch(
        "src.api.main.check_database_connection", return_value=(True, None)
    )

    application = create_app()

    async def override_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    overrides: dict[Callable[..., Any], Callable[..., Any]] = {
        get_db: override_db,
        get_current_user: lambda: USER,
        get_tax_profile_repository: lambda: profile_repo,
        get_invoice_repository: lambda: invoice_repo,
        get_invoice_issuer: lambda: issuer,
        get_municipality_directory: lambda: municipalities,
    }
    application.dependency_overrides.update(overrides)
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as test_client:
        yield test_client


@pytest.fixture
async def anonymous_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Client for an application with no authenticated user on the request."""
    del app.dependency_overrides[get_current_user]
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as test_client:
        yield test_client
