"""Record store: the persistence contract used by the account and subscriber services.

A thin layer over an ``AsyncSession`` that exposes document-store style
operations (find one, create, atomic update, filtered find, count, grouped
count, delete) and translates driver failures into the application error
taxonomy. Every mutation is a single SQL statement so concurrent requests
never lose updates.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from app.core.exceptions import ConflictError, StoreUnavailableError
from app.models.base import Base

logger = logging.getLogger(__name__)

Criteria = Sequence[ColumnElement[bool]]

# Connection-level failures worth a retry by the caller. asyncpg raises
# ConnectionRefusedError and TimeoutError (both OSError) unwrapped on connect.
_TRANSIENT_ERRORS = (OperationalError, InterfaceError, OSError)


class RecordStore[ModelT: Base]:
    """Find/create/update operations for a single model."""

    def __init__(self, db: AsyncSession, model: type[ModelT]) -> None:
        self.db = db
        self.model = model

    # --- reads ---

    async def find_one(
        self,
        *criteria: ColumnElement[bool],
        for_update: bool = False,
        **filters: Any,
    ) -> ModelT | None:
        """Return the single record matching the criteria, or None."""
        stmt = select(self.model).where(*criteria).filter_by(**filters)
        if for_update:
            stmt = stmt.with_for_update()
        try:
            result = await self.db.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            raise self._unavailable(exc) from exc
        return result.scalars().first()

    async def find(
        self,
        criteria: Criteria = (),
        *,
        order_by: Sequence[Any] = (),
        offset: int = 0,
        limit: int | None = None,
    ) -> list[ModelT]:
        """Return records matching the criteria, sorted and paginated."""
        stmt = select(self.model).where(*criteria).order_by(*order_by).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.db.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            raise self._unavailable(exc) from exc
        return list(result.scalars().all())

    async def count(self, criteria: Criteria = ()) -> int:
        """Count records matching the criteria."""
        stmt = select(func.count()).select_from(self.model).where(*criteria)
        try:
            result = await self.db.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            raise self._unavailable(exc) from exc
        return int(result.scalar() or 0)

    async def count_by(
        self,
        column: InstrumentedAttribute[Any],
        criteria: Criteria = (),
    ) -> list[tuple[Any, int]]:
        """Grouped counts of ``column`` values, largest group first."""
        count_col = func.count().label("count")
        stmt = (
            select(column, count_col)
            .where(*criteria)
            .group_by(column)
            .order_by(count_col.desc(), column)
        )
        try:
            result = await self.db.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            raise self._unavailable(exc) from exc
        return [(row[0], int(row[1])) for row in result.all()]

    async def aggregate(
        self,
        *columns: ColumnElement[Any],
        criteria: Criteria = (),
    ) -> dict[str, Any]:
        """Evaluate labelled aggregate expressions over the matching records."""
        stmt = select(*columns).select_from(self.model).where(*criteria)
        try:
            result = await self.db.execute(stmt)
        except _TRANSIENT_ERRORS as exc:
            raise self._unavailable(exc) from exc
        return dict(result.one()._mapping)

    # --- writes ---

    async def create(self, record: ModelT) -> ModelT:
        """Insert a new record and commit.

        Raises:
            ConflictError: a unique key (email, username, token) collides
        """
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(
                f"{self.model.__name__} already exists",
            ) from exc
        except _TRANSIENT_ERRORS as exc:
            await self.db.rollback()
            raise self._unavailable(exc) from exc
        await self.db.refresh(record)
        return record

    async def update_one(
        self,
        criteria: Criteria,
        values: Mapping[str, Any],
        *,
        commit: bool = True,
    ) -> ModelT | None:
        """Atomically apply ``values`` to the record matching ``criteria``.

        ``values`` may hold SQL expressions (``Model.col + 1``), which the
        database evaluates against the current row. Returns the updated
        record, or None when nothing matched.
        """
        stmt = (
            update(self.model)
            .where(*criteria)
            .values(**values)
            .returning(self.model)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
            record = result.scalars().first()
            if commit:
                await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError(f"{self.model.__name__} already exists") from exc
        except _TRANSIENT_ERRORS as exc:
            await self.db.rollback()
            raise self._unavailable(exc) from exc
        return record

    async def delete(self, *criteria: ColumnElement[bool]) -> int:
        """Delete records matching the criteria; returns the row count."""
        stmt = delete(self.model).where(*criteria)
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except _TRANSIENT_ERRORS as exc:
            await self.db.rollback()
            raise self._unavailable(exc) from exc
        return int(result.rowcount or 0)  # type: ignore[attr-defined]

    def _unavailable(self, exc: Exception) -> StoreUnavailableError:
        logger.error("Store error on %s: %s", self.model.__tablename__, exc)
        return StoreUnavailableError()
