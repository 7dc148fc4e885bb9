"""
Company site scraper.

Fetches a company's homepage and, when the homepage links to them, its product
and pricing pages. Output is plain text per page for the extraction oracle.

- Homepage failure aborts the scrape (no pages, one error).
- Product/pricing pages are fetched concurrently and fail independently.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import aiohttp
from bs4 import BeautifulSoup

from src.core.config import settings
from src.core.utils import ensure_scheme
from src.search.data_types import PageType, ScrapePage, ScrapeResult

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

PRODUCT_KEYWORDS = ("product", "solution", "platform", "features")
PRICING_KEYWORDS = ("pricing", "price", "plans", "plan", "how-it-works")

_WHITESPACE_RE = re.compile(r"\s+")
_SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


class FetchError(Exception):
    """HTTP fetch failed (network error, timeout or non-2xx status)."""


@dataclass(frozen=True)
class LinkCandidate:
    url: str
    text: str  # lowercased link text


def html_to_text(html: str) -> str:
    """Drop <script>/<style> blocks and tags, collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()


def extract_links(html: str, base_url: str) -> List[LinkCandidate]:
    """
    Anchor tags as (absolute URL, lowercased text) pairs.
    Fragment-only, javascript:, mailto:, tel: and unparseable links are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(_SKIPPED_HREF_PREFIXES):
            continue
        try:
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            continue
        text = _WHITESPACE_RE.sub(" ", anchor.get_text(" ")).strip().lower()
        links.append(LinkCandidate(url=absolute, text=text))
    return links


def find_link_by_keywords(links: Sequence[LinkCandidate], keywords: Sequence[str]) -> Optional[str]:
    """First link whose URL or text contains a keyword, trying keywords in priority order."""
    for keyword in keywords:
        for link in links:
            if keyword in link.url.lower() or keyword in link.text:
                return link.url
    return None


class SiteScraper:
    """
    Scrapes a company site (home + optional product/pricing pages) over aiohttp.

    Use as async context manager to share one connection pool across scrapes:

        async with SiteScraper() as scraper:
            result = await scraper.scrape("https://example.com")

    Outside a context, each scrape opens and closes its own session.
    """

    def __init__(self, timeout: Optional[float] = None, user_agent: Optional[str] = None):
        self.timeout = timeout if timeout is not None else settings.scrape_timeout_seconds
        self.user_agent = user_agent or settings.scrape_user_agent
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def headers(self):
        return {"User-Agent": self.user_agent, "Accept": ACCEPT_HEADER}

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(headers=self.headers)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None
        return False

    async def _fetch_html(self, session: aiohttp.ClientSession, url: str) -> str:
        """
        GET a page. The whole request runs under asyncio.wait_for so a timeout
        cancels it and releases the connection.
        """
        async def _request() -> str:
            async with session.get(url, headers=self.headers, allow_redirects=True) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(f"Request failed with status {response.status}")
                return await response.text(errors="replace")

        try:
            return await asyncio.wait_for(_request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchError(f"Request timed out after {self.timeout:g}s")
        except aiohttp.ClientError as e:
            raise FetchError(str(e) or e.__class__.__name__) from e

    async def _fetch_page(self, session: aiohttp.ClientSession, page_type: PageType, url: str) -> ScrapePage:
        html = await self._fetch_html(session, url)
        return ScrapePage(type=page_type, url=url, text=html_to_text(html))

    async def scrape(self, base_url: Optional[str]) -> ScrapeResult:
        if not base_url or not base_url.strip():
            return ScrapeResult(pages=[], errors=["Homepage fetch failed: no website provided"])

        if self.session is not None:
            return await self._scrape(self.session, ensure_scheme(base_url))

        async with aiohttp.ClientSession(headers=self.headers) as session:
            return await self._scrape(session, ensure_scheme(base_url))

    async def _scrape(self, session: aiohttp.ClientSession, base_url: str) -> ScrapeResult:
        result = ScrapeResult()

        try:
            homepage_html = await self._fetch_html(session, base_url)
        except Exception as e:
            logger.warning(f"Homepage fetch failed for {base_url}: {e}")
            result.errors.append(f"Homepage fetch failed ({base_url}): {e}")
            return result

        result.pages.append(ScrapePage(type="home", url=base_url, text=html_to_text(homepage_html)))

        links = extract_links(homepage_html, base_url)
        product_url = find_link_by_keywords(links, PRODUCT_KEYWORDS)
        pricing_url = find_link_by_keywords(links, PRICING_KEYWORDS)
        # One page serving both categories is fetched once and labelled twice
        shared_url = product_url if product_url and pricing_url == product_url else None
        if shared_url:
            pricing_url = None

        secondary = [
            (page_type, url)
            for page_type, url in (("product", product_url), ("pricing", pricing_url))
            if url
        ]
        if not secondary:
            return result

        logger.debug(f"Fetching secondary pages for {base_url}: {secondary}")
        fetched = await asyncio.gather(
            *(self._fetch_page(session, page_type, url) for page_type, url in secondary),
            return_exceptions=True,
        )

        for (page_type, url), outcome in zip(secondary, fetched):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.info(f"{page_type.capitalize()} page failed for {base_url}: {outcome}")
                result.errors.append(f"{page_type.capitalize()} page failed ({url}): {outcome}")
            else:
                result.pages.append(outcome)
                if url == shared_url:
                    result.pages.append(ScrapePage(type="pricing", url=url, text=outcome.text))

        return result


async def scrape_company_site(base_url: Optional[str]) -> ScrapeResult:
    """One-off scrape with a throwaway session."""
    return await SiteScraper().scrape(base_url)
