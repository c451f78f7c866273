"""
Ensure every directory table exists in the connected database.

Usage: python -m app.db.schema_check
"""

import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Register every model on Base.metadata
import app.auth.models  # noqa: F401
import app.core.models  # noqa: F401
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


def _missing_tables(sync_conn) -> List[str]:
    existing = set(inspect(sync_conn).get_table_names())
    return [name for name in Base.metadata.tables if name not in existing]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Create any missing tables (with their indexes and unique constraints).
    Existing tables are left untouched. Returns the names of the tables created.
    """
    async with db_engine.begin() as conn:
        missing = await conn.run_sync(_missing_tables)
        if missing:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All directory tables already exist in the database.")
    return missing


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
