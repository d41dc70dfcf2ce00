"""Dialect-aware INSERT for ON CONFLICT upserts.

PostgreSQL in production, SQLite in tests. Both dialects expose
``on_conflict_do_update`` / ``on_conflict_do_nothing`` with the same
signature, so callers build one statement and let the session's bind pick.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: AsyncSession, table: Any) -> Any:
    """Return an INSERT construct that supports ON CONFLICT for the session's dialect."""
    name = dialect_name(db)
    if name == "postgresql":
        return pg_insert(table)
    if name == "sqlite":
        return sqlite_insert(table)
    msg = f"Unsupported database dialect for atomic upserts: {name}"
    raise RuntimeError(msg)
