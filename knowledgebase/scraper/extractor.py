"""Content extraction: turns raw markup into a :class:`ParsedDocument`."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from knowledgebase.config import settings
from knowledgebase.scraper.models import ParsedDocument

# Elements that never contribute visible text.
_NON_CONTENT_TAGS = ["script", "style", "noscript", "iframe", "svg"]

_WHITESPACE = re.compile(r"\s+")
_HAS_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Text / URL helpers
# ---------------------------------------------------------------------------

def normalize_whitespace(text: Optional[str]) -> str:
    """Collapse every whitespace run to a single space and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def to_absolute_url(value: Optional[str]) -> Optional[str]:
    """Return *value* as an absolute http(s) URL, or ``None`` if it is not one.

    Bare hosts get an ``https://`` scheme (``example.com`` →
    ``https://example.com/``).  The fragment is dropped; a malformed
    authority (unclosed IPv6 bracket, non-numeric port) yields ``None``.
    """
    if not value or not value.strip():
        return None
    candidate = value.strip()
    if not _HAS_SCHEME.match(candidate):
        candidate = f"https://{candidate}"
    try:
        parsed = urlparse(candidate)
        if not parsed.hostname:
            return None
        parsed.port  # raises ValueError for a non-numeric port
    except ValueError:
        return None
    parsed = parsed._replace(fragment="")
    if not parsed.path:
        parsed = parsed._replace(path="/")
    return parsed.geturl()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_links(
    html: str,
    base_url: str,
    base_host: str,
    max_links: Optional[int] = None,
) -> List[str]:
    """Return same-host http(s) links found in ``<a href>`` tags of *html*.

    Hrefs are resolved against *base_url*, fragments are stripped, duplicates
    dropped (first occurrence wins) and the list is capped at *max_links*
    (``settings.max_links_per_page`` by default).
    """
    cap = settings.max_links_per_page if max_links is None else max_links
    seen: set[str] = set()
    links: List[str] = []
    for anchor in _soup(html).find_all("a", href=True):
        href = anchor.get("href", "").strip()
        if not href:
            continue
        try:
            resolved, _fragment = urldefrag(urljoin(base_url, href))
            parsed = urlparse(resolved)
            hostname = parsed.hostname
        except ValueError:
            # e.g. malformed IPv6 netloc
            continue
        if parsed.scheme not in ("http", "https"):
            continue
        if hostname != base_host:
            continue
        if resolved not in seen:
            seen.add(resolved)
            links.append(resolved)
    return links[:cap]


def parse_html_to_document(
    html: str,
    url: str,
    organisation: Optional[str] = None,
) -> ParsedDocument:
    """Extract title and visible body text from *html*.

    ``script``, ``style``, ``noscript``, ``iframe`` and ``svg`` elements are
    removed first.  The title falls back to *url* when the page has none.
    The parser never filters short pages; callers apply
    ``settings.min_website_length`` themselves.
    """
    soup = _soup(html)
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()

    title_tag = soup.find("title")
    title = normalize_whitespace(title_tag.get_text()) if title_tag else ""
    title = title or url

    container = soup.body or soup
    body_text = normalize_whitespace(container.get_text(separator=" "))

    return ParsedDocument(
        text=body_text,
        metadata={
            "source": url,
            "organisation": organisation or "unknown",
            "title": title,
            "scrapedAt": datetime.now(timezone.utc).isoformat(),
        },
    )
