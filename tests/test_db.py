"""Database layer tests: connection, schema and the namespaced chunk store.

All tests use an in-memory SQLite database so they are:
- Fast (no disk I/O)
- Isolated (each fixture gets a fresh DB)
- Side-effect free (nothing written to ~/.knowledgebase)

sqlite-vec must be installed (``pip install sqlite-vec``).
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from knowledgebase.config import settings
from knowledgebase.db.chunks import (
    count_chunks,
    list_chunks,
    list_namespaces,
    nearest_chunks,
    upsert_chunks,
)
from knowledgebase.db.connection import get_connection
from knowledgebase.db.migrations import init_db
from knowledgebase.db.models import ChunkRecord

DIM = settings.embedding_dim


def _vector(value: float) -> list[float]:
    return [value] * DIM


def _record(content: str, value: float = 0.1, **metadata) -> ChunkRecord:
    return ChunkRecord(embedding=_vector(value), content=content, metadata=metadata)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with sqlite-vec loaded and schema initialised."""
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_sqlite_vec_loaded(self, conn: sqlite3.Connection) -> None:
        """sqlite-vec should expose vec_version()."""
        row = conn.execute("SELECT vec_version()").fetchone()
        assert row is not None
        assert row[0]

    def test_rows_are_addressable_by_name(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1

    def test_init_db_is_idempotent(self, conn: sqlite3.Connection) -> None:
        init_db(conn)
        init_db(conn)
        tables = {
            r["name"]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        assert "chunks" in tables

    def test_file_database_created_in_workspace(
        self, tmp_path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "workspace_dir", tmp_path / "ws")
        connection = get_connection()
        init_db(connection)
        connection.close()
        assert (tmp_path / "ws" / "knowledgebase.db").exists()


# ---------------------------------------------------------------------------
# chunk store
# ---------------------------------------------------------------------------

class TestUpsertChunks:
    def test_returns_number_written(self, conn: sqlite3.Connection) -> None:
        written = upsert_chunks(conn, "ns", [_record("a"), _record("b")])
        assert written == 2
        assert count_chunks(conn, "ns") == 2

    def test_empty_batch_writes_nothing(self, conn: sqlite3.Connection) -> None:
        assert upsert_chunks(conn, "ns", []) == 0
        assert count_chunks(conn, "ns") == 0

    @pytest.mark.parametrize("namespace", ["", "   "])
    def test_blank_namespace_rejected(self, conn: sqlite3.Connection, namespace: str) -> None:
        with pytest.raises(ValueError):
            upsert_chunks(conn, namespace, [_record("a")])

    def test_metadata_and_position_round_trip(self, conn: sqlite3.Connection) -> None:
        record = ChunkRecord(
            embedding=_vector(0.2),
            content="hello",
            metadata={"source": "https://example.com/", "loc": {"pageNumber": 2}},
            position=4,
        )
        upsert_chunks(conn, "ns", [record])
        [stored] = list_chunks(conn, "ns")
        assert stored.content == "hello"
        assert stored.metadata == {"source": "https://example.com/", "loc": {"pageNumber": 2}}
        assert stored.position == 4
        assert stored.namespace == "ns"
        assert stored.created_at > 0

    def test_wrong_dimension_rolls_back_whole_batch(self, conn: sqlite3.Connection) -> None:
        bad = ChunkRecord(embedding=[0.1] * (DIM + 1), content="bad", metadata={})
        with pytest.raises(sqlite3.IntegrityError):
            upsert_chunks(conn, "ns", [_record("good"), bad])
        assert count_chunks(conn, "ns") == 0

    def test_reinserting_same_content_appends(self, conn: sqlite3.Connection) -> None:
        upsert_chunks(conn, "ns", [_record("same", source="s")])
        upsert_chunks(conn, "ns", [_record("same", source="s")])
        chunks = list_chunks(conn, "ns")
        assert len(chunks) == 2
        assert chunks[0].id != chunks[1].id


class TestNamespaces:
    def test_namespaces_are_isolated(self, conn: sqlite3.Connection) -> None:
        upsert_chunks(conn, "acme", [_record("acme text")])
        upsert_chunks(conn, "globex", [_record("globex text"), _record("more")])
        assert [c.content for c in list_chunks(conn, "acme")] == ["acme text"]
        assert count_chunks(conn, "globex") == 2
        assert count_chunks(conn, "initech") == 0

    def test_list_namespaces(self, conn: sqlite3.Connection) -> None:
        upsert_chunks(conn, "b", [_record("1")])
        upsert_chunks(conn, "a", [_record("1"), _record("2")])
        assert list_namespaces(conn) == [("a", 2), ("b", 1)]

    def test_list_by_source(self, conn: sqlite3.Connection) -> None:
        upsert_chunks(
            conn,
            "ns",
            [_record("one", source="x.txt"), _record("two", source="y.txt")],
        )
        assert [c.content for c in list_chunks(conn, "ns", source="y.txt")] == ["two"]


class TestNearestChunks:
    def test_orders_by_distance_within_namespace(self, conn: sqlite3.Connection) -> None:
        upsert_chunks(conn, "ns", [_record("far", 0.9), _record("near", 0.11), _record("mid", 0.5)])
        upsert_chunks(conn, "other", [_record("exact", 0.1)])
        results = nearest_chunks(conn, "ns", _vector(0.1), top_k=2)
        assert [r.content for r in results] == ["near", "mid"]
        assert results[0].distance is not None
        assert results[0].distance <= results[1].distance

    def test_empty_namespace_returns_nothing(self, conn: sqlite3.Connection) -> None:
        assert nearest_chunks(conn, "ns", _vector(0.1)) == []
