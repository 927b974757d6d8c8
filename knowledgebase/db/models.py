"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class StoredChunk:
    id: str
    namespace: str
    content: str
    metadata: dict[str, Any]
    position: int
    created_at: int
    distance: Optional[float] = None


@dataclass
class ChunkRecord:
    """One row to be written: the vector plus the text and metadata it encodes."""

    embedding: list[float]
    content: str
    metadata: dict[str, Any]
    position: int = 0
