"""Repositories backing the fiscal services.

``TaxProfileRepository`` satisfies ``TaxProfileStore`` and
``FiscalInvoiceRepository`` satisfies ``InvoiceStore``.
"""

from dataclasses import asdict
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy import update as sql_update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.fiscal.models import NewInvoice, StatusUpdate
from src.domain.fiscal.tax_profile import TaxProfile
from src.infrastructure.database.models import FiscalInvoiceModel, TaxProfileModel
from src.infrastructure.database.repository import BaseRepository

# Optional document fields an update copies only when present
_UPDATABLE_FIELDS = (
    "nfse_number",
    "pdf_url",
    "xml_url",
    "error_message",
    "cancellation_reason",
)


class TaxProfileRepository(BaseRepository[TaxProfileModel]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, TaxProfileModel)

    async def get_by_user_id(self, user_id: str) -> TaxProfileModel | None:
        return await self.find_one_by(user_id=user_id)

    async def get_profile(self, user_id: str) -> TaxProfile | None:
        model = await self.get_by_user_id(user_id)
        return TaxProfile.model_validate(model) if model else None

    async def upsert(self, profile: TaxProfile) -> tuple[TaxProfileModel, bool]:
        """Create or replace the user's profile.

        Returns:
            tuple[TaxProfileModel, bool]: The stored row and whether it was
                created.
        """
        data = profile.model_dump(exclude={"id"})
        existing = await self.get_by_user_id(profile.user_id)
        if existing is None:
            return await self.create(TaxProfileModel(**data)), True

        for field, value in data.items():
            setattr(existing, field, value)
        await self.session.flush()
        await self.session.refresh(existing)

        logger.info("Updated tax profile", tax_profile_id=existing.id)
        return existing, False


class FiscalInvoiceRepository(BaseRepository[FiscalInvoiceModel]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, FiscalInvoiceModel)

    async def find_id_by_external_reference(
        self, external_reference: str
    ) -> int | None:
        stmt = select(FiscalInvoiceModel.id).where(
            FiscalInvoiceModel.external_reference == external_reference
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, invoice: NewInvoice) -> int:
        model = await self.create(FiscalInvoiceModel(**asdict(invoice)))
        return model.id

    async def list_for_user(self, user_id: str) -> list[FiscalInvoiceModel]:
        """The user's invoices, newest first."""
        stmt = (
            select(FiscalInvoiceModel)
            .where(FiscalInvoiceModel.user_id == user_id)
            .order_by(
                FiscalInvoiceModel.created_at.desc(), FiscalInvoiceModel.id.desc()
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_user(
        self,
        user_id: str,
        *,
        invoice_id: int | None = None,
        reference: str | None = None,
    ) -> FiscalInvoiceModel | None:
        """Look up one of the user's invoices by id or provider reference."""
        filters: dict[str, Any] = {"user_id": user_id}
        if invoice_id is not None:
            filters["id"] = invoice_id
        if reference is not None:
            filters["reference"] = reference
        return await self.find_one_by(**filters)

    async def apply_status_update(self, reference: str, update: StatusUpdate) -> bool:
        """Apply ``update`` to the invoice with ``reference`` in one statement.

        ``issued_at`` and ``cancelled_at`` keep their first value, so applying
        the same update twice leaves the row unchanged.
        """
        values: dict[str, Any] = {
            "status": update.status.value,
            "updated_at": func.now(),
        }
        for field in _UPDATABLE_FIELDS:
            value = getattr(update, field)
            if value is not None:
                values[field] = value
        if update.mark_issued:
            values["issued_at"] = func.coalesce(
                FiscalInvoiceModel.issued_at, func.now()
            )
        if update.mark_cancelled:
            values["cancelled_at"] = func.coalesce(
                FiscalInvoiceModel.cancelled_at, func.now()
            )

        stmt = (
            sql_update(FiscalInvoiceModel)
            .where(FiscalInvoiceModel.reference == reference)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        applied = result.rowcount > 0

        logger.debug(
            "Status update {} for {}",
            "applied" if applied else "matched nothing",
            reference,
            status=update.status.value,
        )
        return applied
