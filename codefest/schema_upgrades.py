"""Idempotent schema upgrades applied after metadata.create_all()."""
from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

_ALREADY_EXISTS_PHRASES = ("duplicate column name", "already exists")


async def _add_columns(conn: AsyncConnection, table: str, columns: dict[str, tuple[str, str]]) -> None:
    """Add ``columns`` ({name: (sqlite_type, postgres_type)}) to ``table`` when missing."""

    for name, (sqlite_type, postgres_type) in columns.items():
        if conn.dialect.name == "sqlite":
            ddl = f"ALTER TABLE {table} ADD COLUMN {name} {sqlite_type}"
        else:
            ddl = f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {name} {postgres_type}"

        try:
            await conn.execute(text(ddl))
        except DBAPIError as ddl_error:
            message = str(getattr(ddl_error, "orig", ddl_error)).lower()
            if not any(phrase in message for phrase in _ALREADY_EXISTS_PHRASES):
                raise


async def ensure_competition_detail_columns(conn: AsyncConnection) -> None:
    # Early deployments only stored (id, name).
    await _add_columns(
        conn,
        "competitions",
        {
            "description": ("TEXT", "TEXT"),
            "location": ("VARCHAR(120)", "VARCHAR(120)"),
            "start_date": ("DATE", "DATE"),
            "end_date": ("DATE", "DATE"),
        },
    )


async def ensure_competitor_competition_column(conn: AsyncConnection) -> None:
    await _add_columns(
        conn,
        "competitors",
        {
            "competition_id": (
                "INTEGER REFERENCES competitions(id) ON DELETE SET NULL",
                "INTEGER REFERENCES competitions(id) ON DELETE SET NULL",
            ),
        },
    )


def upgrade_order() -> tuple:
    return (
        ensure_competition_detail_columns,
        ensure_competitor_competition_column,
    )


async def run_post_creation_upgrades(conn: AsyncConnection) -> None:
    for step in upgrade_order():
        await step(conn)
