"""Namespaced vector store on top of the ``chunks`` table.

Each namespace is an isolated partition: every read filters on it, so
chunks of different namespaces are never compared.  Writes append; nothing
is keyed on the source document, so re-ingesting a source adds new rows
next to the old ones.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from time import time
from typing import Iterable, Optional

import sqlite_vec

from knowledgebase.db.models import ChunkRecord, StoredChunk


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_chunk(row: sqlite3.Row) -> StoredChunk:
    keys = row.keys()
    return StoredChunk(
        id=row["id"],
        namespace=row["namespace"],
        content=row["content"],
        metadata=json.loads(row["metadata"] or "{}"),
        position=row["position"],
        created_at=row["created_at"],
        distance=row["distance"] if "distance" in keys else None,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_chunks(
    conn: sqlite3.Connection,
    namespace: str,
    records: Iterable[ChunkRecord],
) -> int:
    """Append *records* to *namespace* in a single transaction.

    Either every record is written or, on any error, none is.

    Returns:
        The number of rows written.

    Raises:
        ValueError: If *namespace* is blank.
        sqlite3.Error: If the write fails (e.g. wrong embedding dimension).
    """
    if not namespace or not namespace.strip():
        raise ValueError("namespace must be a non-empty string")

    now = int(time())
    rows = [
        (
            str(uuid.uuid4()),
            namespace,
            record.content,
            json.dumps(record.metadata),
            record.position,
            sqlite_vec.serialize_float32(record.embedding),
            now,
        )
        for record in records
    ]
    if not rows:
        return 0

    with conn:
        conn.executemany(
            """
            INSERT INTO chunks (id, namespace, content, metadata, position, embedding, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def count_chunks(conn: sqlite3.Connection, namespace: str) -> int:
    """Return how many chunks are stored under *namespace*."""
    row = conn.execute(
        "SELECT COUNT(*) FROM chunks WHERE namespace = ?", (namespace,)
    ).fetchone()
    return row[0] if row else 0


def list_chunks(
    conn: sqlite3.Connection,
    namespace: str,
    source: Optional[str] = None,
) -> list[StoredChunk]:
    """Return the chunks of *namespace* in insertion order.

    When *source* is given only chunks whose ``metadata.source`` equals it
    are returned.
    """
    if source is not None:
        rows = conn.execute(
            """
            SELECT id, namespace, content, metadata, position, created_at
            FROM chunks
            WHERE namespace = ? AND json_extract(metadata, '$.source') = ?
            ORDER BY created_at, rowid
            """,
            (namespace, source),
        ).fetchall()
    else:
        rows = conn.execute(
            """
            SELECT id, namespace, content, metadata, position, created_at
            FROM chunks
            WHERE namespace = ?
            ORDER BY created_at, rowid
            """,
            (namespace,),
        ).fetchall()
    return [_row_to_chunk(r) for r in rows]


def list_namespaces(conn: sqlite3.Connection) -> list[tuple[str, int]]:
    """Return ``(namespace, chunk_count)`` pairs sorted by namespace."""
    rows = conn.execute(
        "SELECT namespace, COUNT(*) AS n FROM chunks GROUP BY namespace ORDER BY namespace"
    ).fetchall()
    return [(r["namespace"], r["n"]) for r in rows]


def nearest_chunks(
    conn: sqlite3.Connection,
    namespace: str,
    embedding: list[float],
    top_k: int = 5,
) -> list[StoredChunk]:
    """Return the *top_k* chunks of *namespace* closest to *embedding* (L2)."""
    rows = conn.execute(
        """
        SELECT id, namespace, content, metadata, position, created_at,
               vec_distance_l2(embedding, ?) AS distance
        FROM chunks
        WHERE namespace = ?
        ORDER BY distance
        LIMIT ?
        """,
        (sqlite_vec.serialize_float32(embedding), namespace, top_k),
    ).fetchall()
    return [_row_to_chunk(r) for r in rows]
