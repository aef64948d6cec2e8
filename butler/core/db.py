"""Database helpers for psycopg async connections."""

from __future__ import annotations

import logging
from pathlib import Path

import psycopg

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schema.sql"


def load_schema_sql() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


async def connect(database_url: str) -> psycopg.AsyncConnection:
    """Open an autocommit connection; each repository statement is its own unit of work."""

    if not database_url:
        raise RuntimeError("DATABASE_URL is not configured")
    return await psycopg.AsyncConnection.connect(database_url, autocommit=True)


async def ensure_schema(conn: psycopg.AsyncConnection) -> None:
    """Create the tables and indexes if they do not exist yet."""

    try:
        async with conn.cursor() as cur:
            await cur.execute(load_schema_sql())
    except Exception:
        logger.exception("Failed to apply database schema")
        raise
    logger.info("Database schema ensured")
