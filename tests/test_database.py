from __future__ import annotations

import asyncio

from sqlalchemy import create_engine, inspect, text

from app.database import Database


def _initialise_legacy_schema(database_path: str) -> None:
    """Create a legacy watchlists table lacking the description column."""

    engine = create_engine(f"sqlite:///{database_path}")
    try:
        with engine.begin() as connection:
            connection.execute(
                text(
                    """
                    CREATE TABLE watchlists (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id VARCHAR(128),
                        name VARCHAR(100),
                        data JSON,
                        created_at VARCHAR(40),
                        updated_at VARCHAR(40)
                    )
                    """
                )
            )
    finally:
        engine.dispose()


def test_create_all_adds_description_column(tmp_path) -> None:
    """Schema migrations should backfill the watchlist description column."""

    database_path = tmp_path / "legacy.db"
    _initialise_legacy_schema(str(database_path))

    database = Database(f"sqlite+aiosqlite:///{database_path}")
    asyncio.run(database.create_all())
    asyncio.run(database.dispose())

    inspector_engine = create_engine(f"sqlite:///{database_path}")
    try:
        inspector = inspect(inspector_engine)
        columns = {column["name"] for column in inspector.get_columns("watchlists")}
        tables = set(inspector.get_table_names())
    finally:
        inspector_engine.dispose()

    assert "description" in columns
    assert {"user_documents", "analytics_events"} <= tables


def test_ping_succeeds_on_fresh_database(tmp_path) -> None:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")

    async def scenario() -> bool:
        try:
            await database.create_all()
            return await database.ping()
        finally:
            await database.dispose()

    assert asyncio.run(scenario()) is True
