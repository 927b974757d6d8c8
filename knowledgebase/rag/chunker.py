"""Text chunker for the RAG ingestion pipeline.

Strategy: walk the text with a window of *chunk_size* characters.  Inside
each window the break point is searched recursively through
``\\n\\n`` → ``\\n`` → ``". "`` → ``" "``; when none of them occurs the window
is hard-cut at *chunk_size*.  The next chunk starts exactly *overlap*
characters before the previous one ended, so

    chunks[0] + chunks[1][overlap:] + chunks[2][overlap:] + ... == text

holds for every input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from knowledgebase.config import settings
from knowledgebase.scraper.models import ParsedDocument

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", " ")


@dataclass
class Chunk:
    """A bounded slice of one document's text."""

    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    position: int = 0
    start_index: int = 0


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _find_break(text: str, lo: int, hi: int, separators: Sequence[str]) -> int:
    """Return the end offset of a chunk ending in ``(lo, hi]``.

    Tries separators in order and cuts just after the last occurrence of the
    first one found.  Falls back to *hi* (hard character cut).
    """
    if not separators:
        return hi
    idx = text.rfind(separators[0], lo, hi)
    if idx != -1:
        return idx + len(separators[0])
    return _find_break(text, lo, hi, separators[1:])


def _resolve(chunk_size: Optional[int], overlap: Optional[int]) -> tuple[int, int]:
    size = settings.chunk_size if chunk_size is None else chunk_size
    ovl = settings.chunk_overlap if overlap is None else overlap
    if size <= 0:
        raise ValueError(f"chunk_size must be positive, got {size}")
    if ovl < 0 or ovl >= size:
        raise ValueError(f"overlap must be in [0, chunk_size), got {ovl}")
    return size, ovl


def _spans(text: str, size: int, overlap: int, separators: Sequence[str]) -> List[tuple[int, int]]:
    spans: List[tuple[int, int]] = []
    # Separator breaks are only taken in the back half of the window.
    min_len = max(overlap, size // 2)
    start = 0
    length = len(text)
    while True:
        if length - start <= size:
            spans.append((start, length))
            return spans
        end = _find_break(text, start + min_len, start + size, separators)
        spans.append((start, end))
        start = end - overlap


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def chunk_text(
    text: str,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
    separators: Sequence[str] = DEFAULT_SEPARATORS,
) -> list[str]:
    """Split *text* into overlapping, size-bounded chunks.

    Args:
        text: The raw text to chunk.  It is not stripped or re-spaced.
        chunk_size: Maximum number of **characters** per chunk
            (``settings.chunk_size`` by default).
        overlap: Characters shared by consecutive chunks
            (``settings.chunk_overlap`` by default).
        separators: Preferred break strings, strongest first.

    Returns:
        A list of chunks.  Returns ``[]`` for blank input.

    Raises:
        ValueError: If *chunk_size* is not positive or *overlap* is not
            smaller than *chunk_size*.
    """
    size, ovl = _resolve(chunk_size, overlap)
    if not text or not text.strip():
        return []
    return [text[start:end] for start, end in _spans(text, size, ovl, separators)]


def merge_chunks(chunks: Iterable[str], overlap: Optional[int] = None) -> str:
    """Inverse of :func:`chunk_text`: drop each repeated overlap and join."""
    ovl = settings.chunk_overlap if overlap is None else overlap
    merged = ""
    for index, chunk in enumerate(chunks):
        merged += chunk if index == 0 else chunk[ovl:]
    return merged


def split_documents(
    documents: Iterable[ParsedDocument],
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> List[Chunk]:
    """Chunk every document, preserving document order and chunk order.

    Each chunk carries a copy of its document's metadata, unmodified.
    """
    size, ovl = _resolve(chunk_size, overlap)
    chunks: List[Chunk] = []
    for document in documents:
        if not document.text or not document.text.strip():
            continue
        for position, (start, end) in enumerate(
            _spans(document.text, size, ovl, DEFAULT_SEPARATORS)
        ):
            chunks.append(
                Chunk(
                    content=document.text[start:end],
                    metadata=dict(document.metadata),
                    position=position,
                    start_index=start,
                )
            )
    return chunks
