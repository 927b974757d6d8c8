"""RAG ingestion pipeline: websites and uploaded files.

``ingest_website`` orchestrates the full pipeline from a start URL to a
populated namespace:

    resolve namespace → sitemap / crawl → parse pages → length filter →
    chunk → embed → store

``ingest_files`` does the same for uploaded files, replacing the web steps
with the document sources of :mod:`knowledgebase.rag.loaders`.

Both return a result record instead of raising for expected failures (no
pages, no content, embedding or store errors), so one stream failing never
affects the other.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, List, Optional, Sequence

import httpx

from knowledgebase.config import settings
from knowledgebase.db.chunks import upsert_chunks
from knowledgebase.db.models import ChunkRecord
from knowledgebase.namespace import resolve_namespace
from knowledgebase.rag.chunker import Chunk, split_documents
from knowledgebase.rag.embedder import EmbeddingError, embed_texts
from knowledgebase.rag.loaders import source_for
from knowledgebase.scraper.browser import DelayProvider, HeaderProvider
from knowledgebase.scraper.crawler import collect_website_pages
from knowledgebase.scraper.extractor import parse_html_to_document, to_absolute_url
from knowledgebase.scraper.models import PageFetchResult, ParsedDocument

logger = logging.getLogger(__name__)

# Failures of the embed + store stage that are reported instead of raised.
_WRITE_ERRORS = (
    EmbeddingError,
    EnvironmentError,
    httpx.HTTPError,
    sqlite3.Error,
    KeyError,
    ValueError,
)


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------

@dataclass
class WebsiteIngestResult:
    success: bool
    namespace: str
    url: Optional[str]
    chunks: int = 0
    pages_processed: int = 0
    pages_indexed: int = 0
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FileIngestResult:
    success: bool
    namespace: str
    chunks: int = 0
    docs: int = 0
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UploadedFile:
    """An uploaded file held in memory."""

    filename: str
    data: bytes
    content_type: Optional[str] = None


# ---------------------------------------------------------------------------
# Embedding / store writer
# ---------------------------------------------------------------------------

def write_chunks(conn: sqlite3.Connection, chunks: Sequence[Chunk], namespace: str) -> int:
    """Embed *chunks* and append them to *namespace* in the vector store.

    All chunks are embedded before anything is written, and the write is a
    single transaction, so a failure leaves the store untouched.  There is
    no dedup: chunks of an already-ingested source are added again.

    Returns:
        Number of chunks stored.

    Raises:
        EmbeddingError, EnvironmentError, httpx.HTTPError: embedding failed.
        sqlite3.Error: the store write failed.
    """
    if not chunks:
        return 0
    vectors = embed_texts([chunk.content for chunk in chunks])
    records = [
        ChunkRecord(
            embedding=vector,
            content=chunk.content,
            metadata=chunk.metadata,
            position=chunk.position,
        )
        for chunk, vector in zip(chunks, vectors)
    ]
    written = upsert_chunks(conn, namespace, records)
    logger.info("Stored %d chunk(s) in namespace %r", written, namespace)
    return written


# ---------------------------------------------------------------------------
# Websites
# ---------------------------------------------------------------------------

def filter_documents(
    pages: Sequence[PageFetchResult],
    organisation: Optional[str] = None,
    min_length: Optional[int] = None,
) -> List[ParsedDocument]:
    """Parse *pages* and keep documents with at least *min_length* characters."""
    threshold = settings.min_website_length if min_length is None else min_length
    documents: List[ParsedDocument] = []
    for page in pages:
        document = parse_html_to_document(page.html, page.url, organisation)
        if len(document.text) < threshold:
            logger.info(
                "Skipping %s: %d characters of text (minimum %d)",
                page.url, len(document.text), threshold,
            )
            continue
        documents.append(document)
    return documents


def ingest_website(
    conn: sqlite3.Connection,
    url: str,
    namespace: Optional[str] = None,
    organisation: Optional[str] = None,
    limit: Optional[int] = None,
    client: Optional[httpx.Client] = None,
    headers: Optional[HeaderProvider] = None,
    download_delay: Optional[DelayProvider] = None,
    crawl_delay: Optional[DelayProvider] = None,
) -> WebsiteIngestResult:
    """Discover, fetch, parse, chunk, embed and store a website.

    Args:
        conn: Open, initialised DB connection.
        url: Start URL (bare hosts such as ``example.com`` are accepted).
        namespace: Explicit namespace; wins over *organisation*.
        organisation: Organisation label, slugified into the namespace when
            no explicit namespace is given, and stored in chunk metadata.
        limit: Maximum pages fetched, never above ``settings.max_website_pages``
            (the default).
        client, headers, download_delay, crawl_delay: Overrides passed to
            :func:`~knowledgebase.scraper.crawler.collect_website_pages`.

    Returns:
        A :class:`WebsiteIngestResult`; ``success`` is ``False`` when no page
        could be fetched, no page had enough text, or storing failed.
    """
    ns = resolve_namespace(namespace, organisation)
    start_url = to_absolute_url(url)
    if start_url is None:
        return WebsiteIngestResult(
            success=False, namespace=ns, url=url, error=f"Invalid website URL: {url!r}"
        )

    cap = settings.max_website_pages if limit is None else min(limit, settings.max_website_pages)
    logger.info("Ingesting website %s into namespace %r (limit %d)", start_url, ns, cap)
    pages = collect_website_pages(
        start_url,
        cap,
        client=client,
        headers=headers,
        download_delay=download_delay,
        crawl_delay=crawl_delay,
    )
    if not pages:
        return WebsiteIngestResult(
            success=False,
            namespace=ns,
            url=start_url,
            error=f"No pages could be fetched from {start_url}",
        )

    documents = filter_documents(pages, organisation)
    if not documents:
        return WebsiteIngestResult(
            success=False,
            namespace=ns,
            url=start_url,
            pages_processed=len(pages),
            error=(
                f"Fetched {len(pages)} page(s) from {start_url} but none had at "
                f"least {settings.min_website_length} characters of text"
            ),
        )

    chunks = split_documents(documents)
    try:
        written = write_chunks(conn, chunks, ns)
    except _WRITE_ERRORS as exc:
        logger.error("Storing website %s failed: %s", start_url, exc)
        return WebsiteIngestResult(
            success=False,
            namespace=ns,
            url=start_url,
            pages_processed=len(pages),
            pages_indexed=len(documents),
            error=f"Failed to embed or store website content: {exc}",
        )

    return WebsiteIngestResult(
        success=True,
        namespace=ns,
        url=start_url,
        chunks=written,
        pages_processed=len(pages),
        pages_indexed=len(documents),
        message=(
            f"Indexed {len(documents)} of {len(pages)} page(s) from {start_url} "
            f"into namespace '{ns}'"
        ),
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def ingest_files(
    conn: sqlite3.Connection,
    files: Sequence[UploadedFile],
    namespace: Optional[str] = None,
    organisation: Optional[str] = None,
) -> FileIngestResult:
    """Load, chunk, embed and store uploaded files.

    A file that cannot be read is logged and skipped; the request fails only
    when no file produced any text or when storing fails.
    """
    ns = resolve_namespace(namespace, organisation)
    documents: List[ParsedDocument] = []
    unreadable: List[str] = []

    for upload in files:
        source = source_for(upload.filename, upload.data, organisation, upload.content_type)
        try:
            loaded = source.load()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read %s: %s", upload.filename, exc)
            unreadable.append(upload.filename)
            continue
        logger.info("Loaded %d document(s) from %s", len(loaded), upload.filename)
        documents.extend(loaded)

    if not documents:
        detail = f" (unreadable: {', '.join(unreadable)})" if unreadable else ""
        return FileIngestResult(
            success=False,
            namespace=ns,
            error=f"No readable text found in the uploaded files{detail}",
        )

    chunks = split_documents(documents)
    try:
        written = write_chunks(conn, chunks, ns)
    except _WRITE_ERRORS as exc:
        logger.error("Storing uploaded files failed: %s", exc)
        return FileIngestResult(
            success=False,
            namespace=ns,
            docs=len(documents),
            error=f"Failed to embed or store file content: {exc}",
        )

    return FileIngestResult(
        success=True,
        namespace=ns,
        chunks=written,
        docs=len(documents),
        message=(
            f"Ingested {len(files) - len(unreadable)} file(s) as {written} chunk(s) "
            f"into namespace '{ns}'"
        ),
    )
