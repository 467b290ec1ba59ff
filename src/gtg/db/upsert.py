"""Dialect-aware INSERT for ON CONFLICT clauses.

Postgres in production, SQLite in tests. Both dialects expose the same
``on_conflict_do_nothing`` / ``on_conflict_do_update`` API.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, table: Any) -> Any:  # noqa: ANN401
    """Return an INSERT construct for ``table`` matching the session's dialect."""
    bind = db.get_bind()
    if bind.dialect.name == "sqlite":
        return sqlite_insert(table)
    return pg_insert(table)
