"""SQLite connection factory for the chunk store.

Every connection comes with ``sqlite-vec`` loaded, because chunk embeddings
are stored as float32 blobs and compared with its ``vec_distance_l2``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional, Union

import sqlite_vec

from knowledgebase.config import settings

_MEMORY = ":memory:"


def _load_vector_extension(conn: sqlite3.Connection) -> None:
    conn.enable_load_extension(True)
    try:
        sqlite_vec.load(conn)
    finally:
        conn.enable_load_extension(False)


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Open a connection to the knowledge-base database.

    Args:
        db_path: Database file, or ``":memory:"``.  Defaults to
            ``settings.db_path`` inside the workspace, which is created on
            demand.

    Returns:
        A connection with ``sqlite-vec`` loaded, ``sqlite3.Row`` rows and WAL
        journaling.  The API shares one connection between worker threads,
        so it is opened with ``check_same_thread=False``.
    """
    path = str(db_path or settings.db_path)
    if path != _MEMORY and db_path is None:
        settings.ensure_workspace()

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    _load_vector_extension(conn)
    conn.execute("PRAGMA journal_mode = WAL")
    return conn
