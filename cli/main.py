"""Knowledge-base CLI: entry-point for ingestion operations.

Usage:
    python cli/main.py --help

Command groups:
    db         → schema initialisation and namespace statistics
    namespace  → show which namespace a request would write to
    discover   → preview the pages a website ingestion would fetch
    ingest     → website and file ingestion
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that
# `from knowledgebase.xxx import ...` works when the CLI is invoked as
# `python cli/main.py` from any working directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import List, Optional

import typer

from knowledgebase.config import configure_logging, settings
from knowledgebase.db import get_connection, init_db
from knowledgebase.db.chunks import list_namespaces
from knowledgebase.namespace import resolve_namespace

app = typer.Typer(
    name="kb",
    help="Knowledge-base ingestion CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level (DEBUG, INFO, WARNING…)."
    ),
) -> None:
    """Configure logging before any sub-command runs."""
    configure_logging(log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("stats")
def db_stats() -> None:
    """Show how many chunks every namespace holds."""
    conn = get_connection()
    init_db(conn)
    try:
        rows = list_namespaces(conn)
    finally:
        conn.close()
    if not rows:
        typer.echo("[db stats] No chunks stored yet.")
        return
    for name, count in rows:
        typer.echo(f"  {name}  {count} chunk(s)")


# ---------------------------------------------------------------------------
# Namespace / discovery
# ---------------------------------------------------------------------------
@app.command("namespace")
def namespace_cmd(
    namespace: Optional[str] = typer.Option(None, help="Explicit namespace."),
    organisation: Optional[str] = typer.Option(None, help="Organisation name."),
) -> None:
    """Print the namespace an ingestion with these inputs would use."""
    typer.echo(resolve_namespace(namespace, organisation))


@app.command("discover")
def discover(
    url: str = typer.Option(..., help="Website start URL."),
    limit: int = typer.Option(20, min=1, help="Maximum pages to fetch."),
) -> None:
    """Fetch a website the way ingestion would and list the pages, storing nothing."""
    from knowledgebase.scraper import (
        collect_website_pages,
        parse_html_to_document,
        to_absolute_url,
    )

    start_url = to_absolute_url(url)
    if start_url is None:
        typer.echo(f"[discover] Invalid URL {url!r}")
        raise typer.Exit(1)

    typer.echo(f"[discover] Collecting up to {limit} page(s) from {start_url} …")
    pages = collect_website_pages(start_url, limit)
    if not pages:
        typer.echo("[discover] No pages could be fetched.")
        raise typer.Exit(1)

    for page in pages:
        document = parse_html_to_document(page.html, page.url)
        flag = "" if len(document.text) >= settings.min_website_length else "  (too short)"
        typer.echo(f"  {page.url}  {len(document.text)} chars  {document.title!r}{flag}")


# ---------------------------------------------------------------------------
# Ingest commands
# ---------------------------------------------------------------------------
ingest_app = typer.Typer(help="RAG ingestion operations.", no_args_is_help=True)
app.add_typer(ingest_app, name="ingest")


@ingest_app.command("website")
def ingest_website_cmd(
    url: str = typer.Option(..., help="Website start URL."),
    namespace: Optional[str] = typer.Option(None, help="Explicit namespace."),
    organisation: Optional[str] = typer.Option(None, help="Organisation name."),
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum pages to fetch."),
) -> None:
    """Crawl a website and ingest its pages into the knowledge base."""
    from knowledgebase.rag.ingestor import ingest_website

    conn = get_connection()
    init_db(conn)
    typer.echo(f"[ingest website] Ingesting {url!r} …")
    try:
        result = ingest_website(
            conn, url, namespace=namespace, organisation=organisation, limit=limit
        )
    finally:
        conn.close()

    if not result.success:
        typer.echo(f"[ingest website] Failed: {result.error}")
        raise typer.Exit(1)
    typer.echo(f"[ingest website] {result.message}")
    typer.echo(
        f"[ingest website] pages={result.pages_processed}  "
        f"indexed={result.pages_indexed}  chunks={result.chunks}"
    )


@ingest_app.command("file")
def ingest_file_cmd(
    paths: List[Path] = typer.Argument(..., help="Files to ingest (text or PDF)."),
    namespace: Optional[str] = typer.Option(None, help="Explicit namespace."),
    organisation: Optional[str] = typer.Option(None, help="Organisation name."),
) -> None:
    """Ingest local files into the knowledge base."""
    from knowledgebase.rag.ingestor import UploadedFile, ingest_files

    missing = [p for p in paths if not p.exists()]
    if missing:
        typer.echo(f"[ingest file] Not found: {', '.join(str(p) for p in missing)}")
        raise typer.Exit(1)

    uploads = [UploadedFile(filename=p.name, data=p.read_bytes()) for p in paths]
    conn = get_connection()
    init_db(conn)
    typer.echo(f"[ingest file] Ingesting {len(uploads)} file(s) …")
    try:
        result = ingest_files(conn, uploads, namespace=namespace, organisation=organisation)
    finally:
        conn.close()

    if not result.success:
        typer.echo(f"[ingest file] Failed: {result.error}")
        raise typer.Exit(1)
    typer.echo(f"[ingest file] {result.message}  (docs={result.docs})")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
