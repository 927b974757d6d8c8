"""Data models for the scraper pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict
from urllib.parse import urlparse


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CrawlTarget:
    """The starting point of one website ingestion request."""

    start_url: str
    limit: int

    @property
    def host(self) -> str:
        return urlparse(self.start_url).hostname or ""

    @property
    def origin(self) -> str:
        parsed = urlparse(self.start_url)
        return f"{parsed.scheme}://{parsed.netloc}"


@dataclass
class PageFetchResult:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int = 200
    fetched_at: datetime = field(default_factory=_utcnow)


@dataclass
class ParsedDocument:
    """Normalised text plus the metadata envelope carried into every chunk."""

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title", ""))

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", ""))


@dataclass(frozen=True)
class SitemapEntry:
    """One ``<loc>`` value pulled out of a sitemap document.

    ``kind`` is ``"page"`` for ``<urlset>`` entries and ``"sitemap"`` for
    entries of a ``<sitemapindex>``.
    """

    loc: str
    kind: str = "page"
