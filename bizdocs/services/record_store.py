"""
Tenant-scoped record store.

Thin wrapper over an AsyncSession that adds the company filter to every
lookup, so a record owned by another company is indistinguishable from a
missing one. The counter-based numbering relies on atomic_increment,
which is a single UPDATE ... RETURNING statement rather than a
read-modify-write.
"""

import logging
from decimal import Decimal
from typing import Any, Generic, Optional, Sequence, Type, TypeVar, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import NotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")


class RecordStore(Generic[ModelT]):
    """CRUD for one model, restricted to one company."""

    def __init__(self, db: AsyncSession, model: Type[ModelT], company_id: int, resource: Optional[str] = None):
        self.db = db
        self.model = model
        self.company_id = company_id
        self.resource = resource or model.__name__

    @property
    def _tenant_column(self):
        # Company rows are their own tenant
        if hasattr(self.model, "company_id"):
            return self.model.company_id
        return self.model.id

    def _where(self, *criteria, **filters) -> list:
        clauses = [self._tenant_column == self.company_id]
        clauses.extend(criteria)
        for name, value in filters.items():
            clauses.append(getattr(self.model, name) == value)
        return clauses

    async def insert(self, record: ModelT) -> ModelT:
        """Add a record for this company and flush to obtain its id."""
        if hasattr(self.model, "company_id"):
            record.company_id = self.company_id
        self.db.add(record)
        await self.db.flush()
        return record

    async def find_by_id(self, record_id: Any) -> Optional[ModelT]:
        result = await self.db.execute(select(self.model).where(*self._where(self.model.id == record_id)))
        return result.scalar_one_or_none()

    async def get(self, record_id: Any) -> ModelT:
        """Like find_by_id, but a miss raises NotFoundError."""
        record = await self.find_by_id(record_id)
        if record is None:
            raise NotFoundError(self.resource, record_id)
        return record

    async def find_one(self, *criteria, **filters) -> Optional[ModelT]:
        stmt = select(self.model).where(*self._where(*criteria, **filters)).limit(1)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_many(
        self,
        *criteria,
        order_by: Optional[Sequence[Any]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        **filters,
    ) -> list[ModelT]:
        stmt = select(self.model).where(*self._where(*criteria, **filters))
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, *criteria, **filters) -> int:
        stmt = select(func.count()).select_from(self.model).where(*self._where(*criteria, **filters))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def update_by_id(self, record_id: Any, patch: dict) -> ModelT:
        record = await self.get(record_id)
        for field, value in patch.items():
            setattr(record, field, value)
        await self.db.flush()
        return record

    async def delete(self, record_id: Any) -> None:
        record = await self.get(record_id)
        await self.db.delete(record)
        await self.db.flush()

    async def atomic_increment(self, record_id: Any, field: str, delta: Union[int, Decimal] = 1):
        """Increment a counter column in place and return the new value.

        One UPDATE ... RETURNING, so concurrent callers serialize on the row
        and each sees a distinct value.
        """
        column = getattr(self.model, field)
        stmt = (
            update(self.model)
            .where(*self._where(self.model.id == record_id))
            .values({field: column + delta})
            .returning(column)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        value = result.scalar_one_or_none()
        if value is None:
            raise NotFoundError(self.resource, record_id)
        logger.debug(f"{self.resource} {record_id}: {field} -> {value}")
        return value
