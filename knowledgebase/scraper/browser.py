"""Request header and pacing strategies used by the downloader and crawler.

Both are passed into the crawl components explicitly so tests (and callers
with different politeness needs) can substitute deterministic versions:

``HeaderProvider``
    Builds the header set for page requests and sitemap requests.
    :class:`BrowserHeaders` rotates through realistic browser user agents.

``DelayProvider``
    Pauses between requests.  :class:`RandomDelay` sleeps for a uniformly
    random interval; :class:`NoDelay` returns immediately.
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

_PAGE_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,"
    "image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
)
_SITEMAP_ACCEPT = "application/xml,text/xml;q=0.9,*/*;q=0.8"


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------

class HeaderProvider(ABC):
    """Abstract source of request headers."""

    @abstractmethod
    def page_headers(self, referer: Optional[str] = None) -> dict[str, str]:
        """Headers for an HTML page request, optionally sent with a ``Referer``."""

    @abstractmethod
    def sitemap_headers(self) -> dict[str, str]:
        """Headers for a sitemap (XML) request."""


class BrowserHeaders(HeaderProvider):
    """Browser-like headers with a user agent picked per request."""

    def __init__(
        self,
        user_agents: Sequence[str] = USER_AGENTS,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not user_agents:
            raise ValueError("BrowserHeaders needs at least one user agent")
        self._user_agents = tuple(user_agents)
        self._rng = rng or random.Random()

    def _user_agent(self) -> str:
        return self._rng.choice(self._user_agents)

    def page_headers(self, referer: Optional[str] = None) -> dict[str, str]:
        headers = {
            "User-Agent": self._user_agent(),
            "Accept": _PAGE_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin" if referer else "none",
            "Sec-Fetch-User": "?1",
            "Cache-Control": "max-age=0",
            "DNT": "1",
            "Sec-GPC": "1",
        }
        if referer:
            headers["Referer"] = referer
        return headers

    def sitemap_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent(),
            "Accept": _SITEMAP_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate, br",
            "Connection": "keep-alive",
            "Cache-Control": "max-age=0",
        }


# ---------------------------------------------------------------------------
# Delays
# ---------------------------------------------------------------------------

class DelayProvider(ABC):
    """Abstract pause between two consecutive requests."""

    @abstractmethod
    def wait(self) -> None:
        """Block until the next request may be issued."""


class RandomDelay(DelayProvider):
    """Sleep for a uniformly random number of seconds in ``[low, high]``."""

    def __init__(
        self,
        low: float,
        high: float,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if low < 0 or high < low:
            raise ValueError(f"Invalid delay range: {low!r}..{high!r}")
        self.low = low
        self.high = high
        self._rng = rng or random.Random()
        self._sleep = sleep

    def next_interval(self) -> float:
        return self._rng.uniform(self.low, self.high)

    def wait(self) -> None:
        self._sleep(self.next_interval())


class NoDelay(DelayProvider):
    """Issue requests back to back."""

    def wait(self) -> None:
        return None
