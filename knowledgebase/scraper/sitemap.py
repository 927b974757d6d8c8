"""Sitemap discovery.

``fetch_sitemap_urls`` probes a fixed list of well-known sitemap locations on
the start URL's origin and returns the page URLs of the first one that
yields any.  Parsing happens in two explicit stages:

1. :func:`parse_sitemap_xml`: structured parse with ``ElementTree``.  Every
   supported shape (``<urlset>``, ``<sitemapindex>``, namespaced or prefixed
   tags, ``loc`` carried as an attribute) is normalised into
   :class:`~knowledgebase.scraper.models.SitemapEntry` records here and
   nowhere else.
2. :func:`scan_loc_tags`: a regex scan over the raw body, used only when
   stage 1 produced nothing but the body visibly contains ``<loc>`` tags
   (malformed or non-conforming XML).

Discovery never raises: every fetch or parse problem degrades to "try the
next candidate" or to an empty result, which makes the caller fall back to
crawling.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Optional

import httpx

from knowledgebase.config import settings
from knowledgebase.scraper.browser import HeaderProvider
from knowledgebase.scraper.fetcher import FETCH_ERRORS, fetch_text
from knowledgebase.scraper.models import CrawlTarget, SitemapEntry

logger = logging.getLogger(__name__)

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/sitemap-index.xml")
MAX_NESTED_SITEMAPS = 10

_LOC_TAG = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)
_INDEX_MARKERS = ("sitemapindex", "sitemap-index")


# ---------------------------------------------------------------------------
# Stage 1: structured parse
# ---------------------------------------------------------------------------

def _local_name(tag: str) -> str:
    """Strip ``{namespace}`` and ``prefix:`` parts from an element tag."""
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    if ":" in tag:
        tag = tag.rsplit(":", 1)[1]
    return tag.lower()


def _entry_loc(element: ET.Element) -> Optional[str]:
    """Return the location carried by a ``<url>``/``<sitemap>`` element.

    Accepts a ``<loc>`` child (any namespace), a ``loc`` attribute, or the
    element's own text as the last resort.
    """
    for child in element:
        if _local_name(child.tag) == "loc" and child.text and child.text.strip():
            return child.text.strip()
    for key, value in element.attrib.items():
        if _local_name(key) == "loc" and value.strip():
            return value.strip()
    if element.text and element.text.strip():
        return element.text.strip()
    return None


def parse_sitemap_xml(xml: str) -> List[SitemapEntry]:
    """Return the entries of a ``<urlset>`` or ``<sitemapindex>`` document.

    Unknown roots and unparseable XML yield ``[]``.
    """
    try:
        root = ET.fromstring(xml.strip())
    except ET.ParseError as exc:
        logger.debug("Sitemap XML did not parse: %s", exc)
        return []

    root_name = _local_name(root.tag)
    if root_name == "urlset":
        child_name, kind = "url", "page"
    elif root_name == "sitemapindex":
        child_name, kind = "sitemap", "sitemap"
    else:
        return []

    entries: List[SitemapEntry] = []
    for element in root:
        if _local_name(element.tag) != child_name:
            continue
        loc = _entry_loc(element)
        if loc:
            entries.append(SitemapEntry(loc=loc, kind=kind))
    return entries


# ---------------------------------------------------------------------------
# Stage 2: regex fallback
# ---------------------------------------------------------------------------

def scan_loc_tags(raw: str) -> List[str]:
    """Return the literal ``http…`` values between ``<loc>`` tags of *raw*."""
    urls: List[str] = []
    for match in _LOC_TAG.finditer(raw):
        value = match.group(1).strip()
        if value.startswith("http"):
            urls.append(value)
    return urls


def _scan_fallback(xml: str) -> List[str]:
    if "<loc>" not in xml.lower():
        return []
    logger.info("Structured sitemap parse found nothing; scanning <loc> tags")
    return scan_loc_tags(xml)


def extract_sitemap_urls(xml: str) -> List[str]:
    """Run both stages and return every location in document order."""
    entries = parse_sitemap_xml(xml)
    if entries:
        return [entry.loc for entry in entries]
    return _scan_fallback(xml)


def _looks_like_index(xml: str) -> bool:
    """Marker check for bodies the structured parser could not classify."""
    lowered = xml.lower()
    return any(marker in lowered for marker in _INDEX_MARKERS)


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

def _fetch_nested(
    client: httpx.Client,
    locations: List[str],
    headers: HeaderProvider,
) -> List[str]:
    """Fetch up to :data:`MAX_NESTED_SITEMAPS` sitemaps and concatenate their URLs."""
    urls: List[str] = []
    for nested_url in locations[:MAX_NESTED_SITEMAPS]:
        try:
            body = fetch_text(client, nested_url, headers.sitemap_headers())
        except FETCH_ERRORS as exc:
            logger.warning("Failed to fetch nested sitemap %s: %s", nested_url, exc)
            continue
        if body is None:
            logger.warning("Nested sitemap %s returned a non-success status", nested_url)
            continue
        urls.extend(extract_sitemap_urls(body))
    return urls


def fetch_sitemap_urls(
    client: httpx.Client,
    start_url: str,
    headers: HeaderProvider,
    limit: Optional[int] = None,
) -> List[str]:
    """Return up to *limit* page URLs listed in the site's sitemap.

    Args:
        client: HTTP client all probes are issued through, one at a time.
        start_url: Any absolute URL on the site; only its origin is used.
        headers: Supplies the sitemap request headers.
        limit: Maximum URLs returned (``settings.max_website_pages`` by default).

    Returns:
        URLs in document order, or ``[]`` when no candidate yields any.
    """
    target = CrawlTarget(
        start_url=start_url,
        limit=settings.max_website_pages if limit is None else limit,
    )

    for path in SITEMAP_PATHS:
        sitemap_url = f"{target.origin}{path}"
        logger.info("Checking sitemap at %s", sitemap_url)
        try:
            body = fetch_text(client, sitemap_url, headers.sitemap_headers())
        except FETCH_ERRORS as exc:
            logger.warning("Error checking sitemap %s: %s", sitemap_url, exc)
            continue
        if body is None:
            logger.info("No sitemap at %s", sitemap_url)
            continue

        entries = parse_sitemap_xml(body)
        if entries:
            locations = [entry.loc for entry in entries]
            is_index = entries[0].kind == "sitemap"
        else:
            locations = _scan_fallback(body)
            is_index = _looks_like_index(body)

        if is_index:
            if not locations:
                logger.warning("Sitemap index at %s lists no nested sitemaps", sitemap_url)
                continue
            logger.info("Sitemap index at %s lists %d sitemaps", sitemap_url, len(locations))
            urls = _fetch_nested(client, locations, headers)
        else:
            urls = locations

        if urls:
            logger.info("Found %d URLs via %s", len(urls), sitemap_url)
            return urls[: target.limit]
        logger.warning("Sitemap at %s contained no URLs", sitemap_url)

    return []
