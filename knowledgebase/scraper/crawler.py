"""Website page collection: sitemap-driven download or breadth-first crawl.

Every request of one collection is issued sequentially through a single
``httpx.Client`` and awaited before the next one starts; pacing comes from
an injected :class:`~knowledgebase.scraper.browser.DelayProvider`.  All
mutable crawl state (queue, seen-set, fetched pages) lives in a
:class:`CrawlContext` created per call, so concurrent ingestions never share
anything.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Sequence
from urllib.parse import urldefrag

import httpx

from knowledgebase.config import settings
from knowledgebase.scraper.browser import (
    BrowserHeaders,
    DelayProvider,
    HeaderProvider,
    RandomDelay,
)
from knowledgebase.scraper.extractor import extract_links
from knowledgebase.scraper.fetcher import FETCH_ERRORS, create_client, fetch_page
from knowledgebase.scraper.models import CrawlTarget, PageFetchResult
from knowledgebase.scraper.sitemap import fetch_sitemap_urls

logger = logging.getLogger(__name__)


def default_download_delay() -> DelayProvider:
    return RandomDelay(settings.download_delay_min, settings.download_delay_max)


def default_crawl_delay() -> DelayProvider:
    return RandomDelay(settings.crawl_delay_min, settings.crawl_delay_max)


# ---------------------------------------------------------------------------
# Sequential downloader
# ---------------------------------------------------------------------------

def download_pages_sequentially(
    client: httpx.Client,
    urls: Sequence[str],
    limit: Optional[int] = None,
    headers: Optional[HeaderProvider] = None,
    delay: Optional[DelayProvider] = None,
) -> List[PageFetchResult]:
    """Fetch ``urls[:limit]`` one at a time, in order.

    The last successfully fetched URL is sent as ``Referer`` on the next
    request.  A delay follows every request except the last one.  Failed
    URLs are logged and skipped, so the result may be shorter than the input.
    """
    cap = settings.max_website_pages if limit is None else limit
    headers = headers or BrowserHeaders()
    delay = delay or default_download_delay()

    to_fetch = list(urls)[:cap]
    pages: List[PageFetchResult] = []
    previous_url: Optional[str] = None

    for index, url in enumerate(to_fetch):
        logger.info("Fetching %s", url)
        try:
            page = fetch_page(client, url, headers.page_headers(previous_url))
        except FETCH_ERRORS as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
        else:
            pages.append(page)
            previous_url = url

        if index < len(to_fetch) - 1:
            delay.wait()

    return pages


# ---------------------------------------------------------------------------
# Breadth-first crawler
# ---------------------------------------------------------------------------

@dataclass
class CrawlContext:
    """State owned by exactly one :func:`crawl_website` invocation."""

    target: CrawlTarget
    queue: Deque[str] = field(default_factory=deque)
    seen: set[str] = field(default_factory=set)
    pages: List[PageFetchResult] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return not self.queue or len(self.pages) >= self.target.limit

    @property
    def referer(self) -> Optional[str]:
        return self.pages[-1].url if self.pages else None

    def enqueue(self, links: Sequence[str]) -> None:
        """Queue unseen *links* while the fan-out bound of ``2 × limit`` allows."""
        for link in links:
            if link in self.seen:
                continue
            if len(self.queue) + len(self.pages) >= self.target.limit * 2:
                break
            self.queue.append(link)


def crawl_website(
    client: httpx.Client,
    start_url: str,
    limit: Optional[int] = None,
    headers: Optional[HeaderProvider] = None,
    delay: Optional[DelayProvider] = None,
    max_links_per_page: Optional[int] = None,
) -> List[PageFetchResult]:
    """Breadth-first crawl of *start_url*'s host, up to *limit* pages.

    Only http(s) links on the start URL's exact hostname are followed, with
    fragments stripped before dedup.  A failed fetch abandons that URL (no
    retry) and the crawl moves on.

    Returns:
        Successfully fetched pages in the order they were fetched.
    """
    ctx = CrawlContext(
        target=CrawlTarget(
            start_url=start_url,
            limit=settings.max_website_pages if limit is None else limit,
        )
    )
    headers = headers or BrowserHeaders()
    delay = delay or default_crawl_delay()
    ctx.queue.append(urldefrag(start_url)[0])

    while not ctx.done:
        current = ctx.queue.popleft()
        if current in ctx.seen:
            continue
        ctx.seen.add(current)

        logger.info("Crawling %s", current)
        try:
            page = fetch_page(client, current, headers.page_headers(ctx.referer))
        except FETCH_ERRORS as exc:
            logger.warning("Failed to crawl %s: %s", current, exc)
        else:
            ctx.pages.append(page)
            if len(ctx.pages) >= ctx.target.limit:
                break
            ctx.enqueue(
                extract_links(page.html, current, ctx.target.host, max_links_per_page)
            )

        delay.wait()

    return ctx.pages


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def collect_website_pages(
    start_url: str,
    limit: Optional[int] = None,
    client: Optional[httpx.Client] = None,
    headers: Optional[HeaderProvider] = None,
    download_delay: Optional[DelayProvider] = None,
    crawl_delay: Optional[DelayProvider] = None,
) -> List[PageFetchResult]:
    """Return the raw pages of a website, sitemap first, crawl as fallback.

    Args:
        start_url: Absolute http(s) URL the ingestion starts from.
        limit: Maximum number of pages (``settings.max_website_pages``).
        client: HTTP client to use; a private one is created and closed
            when omitted.
        headers: Header strategy shared by sitemap probes and page fetches.
        download_delay: Pause between sitemap-listed page downloads.
        crawl_delay: Pause between crawl fetches.
    """
    cap = settings.max_website_pages if limit is None else limit
    headers = headers or BrowserHeaders()
    owns_client = client is None
    http = client or create_client()

    try:
        sitemap_urls = fetch_sitemap_urls(http, start_url, headers, limit=cap)
        if sitemap_urls:
            logger.info("Sitemap found with %d URLs", len(sitemap_urls))
            return download_pages_sequentially(
                http, sitemap_urls, cap, headers=headers, delay=download_delay
            )

        logger.info("No sitemap found for %s, falling back to crawl", start_url)
        return crawl_website(
            http, start_url, cap, headers=headers, delay=crawl_delay
        )
    finally:
        if owns_client:
            http.close()
