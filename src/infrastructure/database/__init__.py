"""Async PostgreSQL persistence for tax profiles and fiscal invoices.

- **base**: declarative base and shared columns
- **models**: ``tax_profiles`` and ``fiscal_invoices`` tables
- **session**: engine, sessions and slow query logging
- **repository**: generic repository
- **repositories**: fiscal repositories
- **dependencies**: FastAPI session dependency
"""

from src.infrastructure.database.base import Base, BaseModel
from src.infrastructure.database.dependencies import DatabaseSession, get_db
from src.infrastructure.database.models import FiscalInvoiceModel, TaxProfileModel
from src.infrastructure.database.repositories import (
    FiscalInvoiceRepository,
    TaxProfileRepository,
)
from src.infrastructure.database.repository import BaseRepository
from src.infrastructure.database.session import (
    check_database_connection,
    close_database,
    create_database_engine,
    get_async_session,
    get_engine,
    get_session_factory,
)

__all__ = [
    "Base",
    "BaseModel",
    "BaseRepository",
    "DatabaseSession",
    "FiscalInvoiceModel",
    "FiscalInvoiceRepository",
    "TaxProfileModel",
    "TaxProfileRepository",
    "check_database_connection",
    "close_database",
    "create_database_engine",
    "get_async_session",
    "get_db",
    "get_engine",
    "get_session_factory",
]
