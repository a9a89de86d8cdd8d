"""Generic async repository over a single SQLAlchemy model."""

from typing import Any

from loguru import logger
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.base import BaseModel


class BaseRepository[T: BaseModel]:
    """Inserts and column lookups shared by every repository.

    Args:
        session: The async session the repository works in. Repositories
            flush but never commit; the session owner decides.
        model_class: The model this repository manages.

    Example:
        class TaxProfileRepository(BaseRepository[TaxProfileModel]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(session, TaxProfileModel)
    """

    def __init__(self, session: AsyncSession, model_class: type[T]) -> None:
        self.session = session
        self.model_class = model_class

    async def create(self, obj: T) -> T:
        """Insert ``obj`` and load its server-generated id and timestamps."""
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)

        logger.info(
            "Created {} instance with ID: {}", self.model_class.__name__, obj.id
        )
        return obj

    def _filtered(self, filters: dict[str, Any]) -> Select[tuple[T]]:
        stmt = select(self.model_class)
        for field, value in filters.items():
            if not hasattr(self.model_class, field):
                msg = f"{self.model_class.__name__} has no column '{field}'"
                raise AttributeError(msg)
            stmt = stmt.where(getattr(self.model_class, field) == value)
        return stmt

    async def find_one_by(self, **filters: Any) -> T | None:
        stmt = self._filtered(filters).order_by(self.model_class.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
