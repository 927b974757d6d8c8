"""Tests for the scraper building blocks: headers, delays, fetch and extraction.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made during fetch tests.
- Delay strategies are driven with a seeded ``random.Random`` and a recording
  ``sleep`` callable, so no test actually sleeps.
"""

from __future__ import annotations

import random

import httpx
import pytest
import respx

from knowledgebase.scraper.browser import USER_AGENTS, BrowserHeaders, NoDelay, RandomDelay
from knowledgebase.scraper.extractor import (
    extract_links,
    normalize_whitespace,
    parse_html_to_document,
    to_absolute_url,
)
from knowledgebase.scraper.fetcher import create_client, fetch_page, fetch_text
from knowledgebase.scraper.models import CrawlTarget, PageFetchResult, ParsedDocument


# ---------------------------------------------------------------------------
# Fixtures / constants
# ---------------------------------------------------------------------------

_SIMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head>
  <title>
     Test    Page
  </title>
  <style>.hidden { display: none }</style>
</head>
<body>
  <main>
    <p>This is the main content of the test page with enough text for extraction.</p>
    <p>It discusses   topics such as renewable energy
       and battery technology.</p>
    <a href="https://example.com/page1">Link 1</a>
    <a href="/page2#section">Link 2</a>
    <a href="#fragment">Fragment</a>
  </main>
  <script>var tracking = "should not appear";</script>
  <noscript>Enable JavaScript</noscript>
  <iframe src="https://ads.example.net">Ad frame</iframe>
  <svg><text>vector label</text></svg>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Headers and delays
# ---------------------------------------------------------------------------

class TestBrowserHeaders:
    def test_page_headers_without_referer(self) -> None:
        headers = BrowserHeaders(rng=random.Random(1)).page_headers()
        assert headers["User-Agent"] in USER_AGENTS
        assert headers["Accept"].startswith("text/html")
        assert headers["Accept-Language"] == "en-US,en;q=0.9"
        assert headers["Accept-Encoding"] == "gzip, deflate, br"
        assert headers["Sec-Fetch-Site"] == "none"
        assert "Referer" not in headers

    def test_page_headers_with_referer(self) -> None:
        headers = BrowserHeaders().page_headers("https://example.com/")
        assert headers["Referer"] == "https://example.com/"
        assert headers["Sec-Fetch-Site"] == "same-origin"

    def test_sitemap_headers_accept_xml(self) -> None:
        headers = BrowserHeaders().sitemap_headers()
        assert headers["Accept"].startswith("application/xml")
        assert "Referer" not in headers

    def test_user_agent_rotates(self) -> None:
        provider = BrowserHeaders(rng=random.Random(7))
        agents = {provider.page_headers()["User-Agent"] for _ in range(50)}
        assert len(agents) > 1

    def test_custom_user_agents(self) -> None:
        provider = BrowserHeaders(user_agents=["only-agent"])
        assert provider.page_headers()["User-Agent"] == "only-agent"
        assert provider.sitemap_headers()["User-Agent"] == "only-agent"

    def test_empty_user_agents_rejected(self) -> None:
        with pytest.raises(ValueError):
            BrowserHeaders(user_agents=[])


class TestDelays:
    def test_random_delay_sleeps_within_range(self) -> None:
        slept: list[float] = []
        delay = RandomDelay(0.5, 1.5, rng=random.Random(3), sleep=slept.append)
        for _ in range(20):
            delay.wait()
        assert len(slept) == 20
        assert all(0.5 <= s <= 1.5 for s in slept)

    def test_invalid_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            RandomDelay(1.0, 0.5)
        with pytest.raises(ValueError):
            RandomDelay(-1.0, 0.5)

    def test_no_delay_returns_immediately(self) -> None:
        assert NoDelay().wait() is None


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

class TestFetchPage:
    def test_successful_fetch_returns_page(self) -> None:
        with respx.mock:
            respx.get("https://example.com/article").mock(
                return_value=httpx.Response(200, text=_SIMPLE_HTML)
            )
            with create_client() as client:
                page = fetch_page(client, "https://example.com/article", {"X-Test": "1"})

        assert isinstance(page, PageFetchResult)
        assert page.url == "https://example.com/article"
        assert page.status_code == 200
        assert "<title>" in page.html
        assert page.fetched_at.tzinfo is not None

    def test_headers_are_sent(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="ok")
            )
            with create_client() as client:
                fetch_page(client, "https://example.com/", {"Referer": "https://example.com/a"})

            assert route.calls[0].request.headers["Referer"] == "https://example.com/a"

    def test_http_error_raises(self) -> None:
        with respx.mock:
            respx.get("https://example.com/missing").mock(
                return_value=httpx.Response(404, text="Not Found")
            )
            with create_client() as client:
                with pytest.raises(httpx.HTTPStatusError):
                    fetch_page(client, "https://example.com/missing", {})

    def test_fetch_text_returns_none_on_non_success(self) -> None:
        with respx.mock:
            respx.get("https://example.com/sitemap.xml").mock(
                return_value=httpx.Response(404)
            )
            with create_client() as client:
                assert fetch_text(client, "https://example.com/sitemap.xml", {}) is None

    def test_fetch_text_propagates_transport_errors(self) -> None:
        with respx.mock:
            respx.get("https://example.com/sitemap.xml").mock(
                side_effect=httpx.ConnectError("refused")
            )
            with create_client() as client:
                with pytest.raises(httpx.ConnectError):
                    fetch_text(client, "https://example.com/sitemap.xml", {})


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

class TestUrlHelpers:
    def test_normalize_whitespace(self) -> None:
        assert normalize_whitespace("  a \n\t b   c ") == "a b c"
        assert normalize_whitespace(None) == ""

    def test_to_absolute_url_adds_scheme(self) -> None:
        assert to_absolute_url("example.com") == "https://example.com/"

    def test_to_absolute_url_keeps_existing_url(self) -> None:
        assert to_absolute_url(" http://example.com/docs?a=1 ") == "http://example.com/docs?a=1"

    def test_to_absolute_url_rejects_blank(self) -> None:
        assert to_absolute_url("") is None
        assert to_absolute_url("   ") is None
        assert to_absolute_url(None) is None

    def test_to_absolute_url_drops_fragment(self) -> None:
        assert to_absolute_url("example.com/#top") == "https://example.com/"
        assert to_absolute_url("https://example.com/docs#intro") == "https://example.com/docs"

    @pytest.mark.parametrize(
        "value", ["http://[::1", "https://example.com:abc/", "example.com:99999"]
    )
    def test_to_absolute_url_rejects_malformed_authority(self, value: str) -> None:
        assert to_absolute_url(value) is None

    def test_crawl_target_host_and_origin(self) -> None:
        target = CrawlTarget(start_url="https://docs.example.com:8443/guide/", limit=5)
        assert target.host == "docs.example.com"
        assert target.origin == "https://docs.example.com:8443"


# ---------------------------------------------------------------------------
# Link extraction
# ---------------------------------------------------------------------------

class TestExtractLinks:
    def test_resolves_relative_links_and_strips_fragments(self) -> None:
        links = extract_links(_SIMPLE_HTML, "https://example.com/", "example.com")
        assert "https://example.com/page1" in links
        assert "https://example.com/page2" in links
        assert all("#" not in link for link in links)

    def test_excludes_other_hosts_and_schemes(self) -> None:
        html = (
            '<a href="https://other.com/x">x</a>'
            '<a href="https://sub.example.com/y">y</a>'
            '<a href="mailto:hi@example.com">mail</a>'
            '<a href="javascript:void(0)">js</a>'
            '<a href="ftp://example.com/file">ftp</a>'
            '<a href="https://example.com/ok">ok</a>'
        )
        links = extract_links(html, "https://example.com/", "example.com")
        assert links == ["https://example.com/ok"]

    def test_deduplicates_after_fragment_removal(self) -> None:
        html = '<a href="/a#one">1</a><a href="/a#two">2</a><a href="/a">3</a>'
        links = extract_links(html, "https://example.com/", "example.com")
        assert links == ["https://example.com/a"]

    def test_caps_links_per_page(self) -> None:
        html = "".join(f'<a href="/p{i}">{i}</a>' for i in range(80))
        links = extract_links(html, "https://example.com/", "example.com", max_links=50)
        assert len(links) == 50
        assert links[0] == "https://example.com/p0"
        assert links[-1] == "https://example.com/p49"

    def test_default_cap_comes_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("knowledgebase.config.settings.max_links_per_page", 3)
        html = "".join(f'<a href="/p{i}">{i}</a>' for i in range(10))
        assert len(extract_links(html, "https://example.com/", "example.com")) == 3

    def test_no_links_returns_empty(self) -> None:
        assert extract_links("<html><body>no links</body></html>", "https://example.com/", "example.com") == []


# ---------------------------------------------------------------------------
# Page parser
# ---------------------------------------------------------------------------

class TestParseHtmlToDocument:
    def test_returns_parsed_document(self) -> None:
        doc = parse_html_to_document(_SIMPLE_HTML, "https://example.com/", "Acme")
        assert isinstance(doc, ParsedDocument)
        assert doc.title == "Test Page"
        assert doc.source == "https://example.com/"
        assert doc.metadata["organisation"] == "Acme"
        assert doc.metadata["scrapedAt"].endswith("+00:00")

    def test_body_text_is_normalised(self) -> None:
        doc = parse_html_to_document(_SIMPLE_HTML, "https://example.com/")
        assert "main content of the test page" in doc.text
        assert "discusses topics such as renewable energy and battery technology." in doc.text
        assert "  " not in doc.text
        assert doc.text == doc.text.strip()

    def test_non_content_elements_removed(self) -> None:
        doc = parse_html_to_document(_SIMPLE_HTML, "https://example.com/")
        assert "tracking" not in doc.text
        assert "Enable JavaScript" not in doc.text
        assert "Ad frame" not in doc.text
        assert "vector label" not in doc.text
        assert "display: none" not in doc.text

    def test_title_falls_back_to_url(self) -> None:
        doc = parse_html_to_document("<html><body><p>Hi</p></body></html>", "https://example.com/x")
        assert doc.title == "https://example.com/x"

    def test_organisation_defaults_to_unknown(self) -> None:
        doc = parse_html_to_document(_SIMPLE_HTML, "https://example.com/")
        assert doc.metadata["organisation"] == "unknown"

    def test_empty_html_does_not_raise(self) -> None:
        doc = parse_html_to_document("", "https://example.com/")
        assert doc.text == ""
        assert doc.title == "https://example.com/"

    def test_metadata_keys(self) -> None:
        doc = parse_html_to_document(_SIMPLE_HTML, "https://example.com/")
        assert set(doc.metadata) == {"source", "organisation", "title", "scrapedAt"}
