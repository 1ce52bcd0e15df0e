"""Base repository with common CRUD operations."""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Generic async repository for SQLAlchemy models."""

    def __init__(self, session: AsyncSession, model_class: type[T]):
        self.session = session
        self.model_class = model_class

    async def get_by_id(self, pk_field: str, pk_value: str) -> T | None:
        """Get a single record by primary key."""
        stmt = (
            select(self.model_class)
            .where(getattr(self.model_class, pk_field) == pk_value)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, pk_field: str, pk_values: Iterable[str | None]) -> dict[str, T]:
        """Load records for a set of primary keys, keyed by primary key."""
        wanted = {value for value in pk_values if value}
        if not wanted:
            return {}
        column = getattr(self.model_class, pk_field)
        stmt = (
            select(self.model_class)
            .where(column.in_(wanted))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return {getattr(row, pk_field): row for row in result.scalars().all()}

    async def create(self, **kwargs: Any) -> T:
        """Create and persist a new record."""
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **kwargs: Any) -> T:
        """Update an existing record."""
        for key, value in kwargs.items():
            setattr(row, key, value)
        await self.session.flush()
        return row
