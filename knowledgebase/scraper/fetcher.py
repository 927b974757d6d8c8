"""HTTP fetch helpers shared by the sitemap resolver, downloader and crawler."""

from __future__ import annotations

from typing import Optional

import httpx

from knowledgebase.config import settings
from knowledgebase.scraper.models import PageFetchResult

# Per-URL failures callers log and skip.  ``InvalidURL`` (e.g. a bad port in
# a harvested href) is not an ``HTTPError`` subclass.
FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


def create_client(timeout: Optional[float] = None) -> httpx.Client:
    """Return the client one website ingestion issues all its requests through.

    Headers are supplied per request by a
    :class:`~knowledgebase.scraper.browser.HeaderProvider`, so the client
    itself carries none.
    """
    return httpx.Client(
        timeout=timeout if timeout is not None else settings.request_timeout,
        follow_redirects=True,
    )


def fetch_page(
    client: httpx.Client,
    url: str,
    headers: dict[str, str],
) -> PageFetchResult:
    """GET *url* and return a :class:`PageFetchResult`.

    Raises:
        httpx.HTTPStatusError: If the server returns a 4xx/5xx status code.
        httpx.HTTPError: On any transport-level failure.
        httpx.InvalidURL: If *url* cannot be turned into a request.
    """
    response = client.get(url, headers=headers)
    response.raise_for_status()
    return PageFetchResult(url=url, html=response.text, status_code=response.status_code)


def fetch_text(
    client: httpx.Client,
    url: str,
    headers: dict[str, str],
) -> Optional[str]:
    """GET *url* and return its body, or ``None`` for a non-2xx response.

    Transport errors still raise; only the status check is softened.
    """
    response = client.get(url, headers=headers)
    if not response.is_success:
        return None
    return response.text
