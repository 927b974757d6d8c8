"""Database initialisation.

``init_db(conn)`` is idempotent and safe to call on an existing database.
"""

from __future__ import annotations

import sqlite3

from knowledgebase.config import settings


def _read_schema() -> str:
    """Load schema.sql and inject runtime values (e.g. embedding dimension)."""
    template = settings.schema_path.read_text(encoding="utf-8")
    return template.replace("{embedding_dim}", str(settings.embedding_dim))


def init_db(conn: sqlite3.Connection) -> None:
    """Create the chunk table and its indexes.

    Every DDL statement uses ``IF NOT EXISTS`` so calling this multiple
    times on the same database is safe.

    Args:
        conn: An open, configured SQLite connection (sqlite-vec already loaded).
    """
    conn.executescript(_read_schema())
