"""Helpers for statements whose syntax differs between PostgreSQL and SQLite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """Return an INSERT construct that supports ``on_conflict_do_*`` for the bound dialect."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
