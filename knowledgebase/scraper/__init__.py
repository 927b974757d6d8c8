"""Scraper package: sitemap discovery, crawling & content extraction."""

from knowledgebase.scraper.crawler import (
    collect_website_pages,
    crawl_website,
    download_pages_sequentially,
)
from knowledgebase.scraper.extractor import (
    extract_links,
    parse_html_to_document,
    to_absolute_url,
)
from knowledgebase.scraper.models import PageFetchResult, ParsedDocument
from knowledgebase.scraper.sitemap import fetch_sitemap_urls

__all__ = [
    "collect_website_pages",
    "crawl_website",
    "download_pages_sequentially",
    "extract_links",
    "fetch_sitemap_urls",
    "parse_html_to_document",
    "to_absolute_url",
    "PageFetchResult",
    "ParsedDocument",
]
