"""Database utility functions for cross-database compatibility."""

import logging
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def upsert(
    session: AsyncSession,
    model: type[T],
    values: dict[str, Any],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
) -> None:
    """
    Database-agnostic upsert operation.

    Uses native INSERT ... ON CONFLICT on PostgreSQL and SQLite,
    falls back to SELECT + INSERT/UPDATE for other dialects.

    Args:
        session: AsyncSession instance
        model: SQLModel table class
        values: Dictionary of column values to insert/update
        conflict_columns: Columns that define uniqueness (for conflict detection)
        update_columns: Columns to update on conflict (defaults to all non-conflict
            columns). An empty list means insert-or-do-nothing.

    Example:
        await upsert(
            session,
            Team,
            {"id": "PL-57", "name": "Arsenal FC", ...},
            conflict_columns=["id"],
            update_columns=["name", "short_name", "code", "logo"],
        )
    """
    if update_columns is None:
        update_columns = [k for k in values.keys() if k not in conflict_columns]

    dialect = session.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)

    if insert is not None:
        stmt = insert(model).values(**values)
        if update_columns:
            update_dict = {col: getattr(stmt.excluded, col) for col in update_columns}
            stmt = stmt.on_conflict_do_update(
                index_elements=conflict_columns,
                set_=update_dict,
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)

        await session.execute(stmt)
        return

    logger.debug(f"No native upsert for dialect {dialect}, using SELECT + INSERT/UPDATE")

    filters = [getattr(model, col) == values[col] for col in conflict_columns]
    result = await session.execute(select(model).where(*filters))
    existing = result.scalar_one_or_none()

    if existing is not None:
        for col in update_columns:
            if col in values:
                setattr(existing, col, values[col])
    else:
        session.add(model(**values))
    await session.flush()
