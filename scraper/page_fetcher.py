"""Fetch rendered page text through hosted scraping services."""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from pipeline.errors import SourceFetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedPage:
    """Text content of a source page."""
    url: str
    content: str
    scraper: str


class PageFetcher:
    """Fetches a page via Firecrawl, falling back to Scrapfly."""

    FIRECRAWL_URL = 'https://api.firecrawl.dev/v1/scrape'
    SCRAPFLY_URL = 'https://api.scrapfly.io/scrape'
    WAIT_FOR_MS = 3000

    def __init__(
        self,
        firecrawl_api_key: str,
        scrapfly_api_key: str,
        timeout: int = 30,
        max_retries: int = 2,
        base_delay: float = 1,
    ):
        """
        Initialize the page fetcher.

        Args:
            firecrawl_api_key: Firecrawl API key
            scrapfly_api_key: Scrapfly API key
            timeout: Scrape timeout in seconds (default: 30)
            max_retries: Attempts per provider (default: 2)
            base_delay: Initial backoff delay in seconds (default: 1)
        """
        self.firecrawl_api_key = firecrawl_api_key
        self.scrapfly_api_key = scrapfly_api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = requests.Session()

    def fetch(self, url: str) -> FetchedPage:
        """
        Fetch page text for a source.

        Args:
            url: Source page URL

        Returns:
            FetchedPage with non-empty content

        Raises:
            SourceFetchError: If no provider returned content
        """
        for scraper, fetch_fn in (('Firecrawl', self._fetch_firecrawl), ('Scrapfly', self._fetch_scrapfly)):
            try:
                content = fetch_fn(url)
            except requests.RequestException as e:
                logger.warning(f"{scraper} error for {url}: {e}")
                continue

            if content and content.strip():
                logger.info(f"{scraper} success for {url}: {len(content)} characters")
                return FetchedPage(url=url, content=content, scraper=scraper)

            logger.warning(f"{scraper} returned no content for {url}")

        raise SourceFetchError(url, f"Scrapers failed for {url[:50]}")

    def fetch_links(self, url: str) -> List[str]:
        """
        List the links on a page through Firecrawl.

        Args:
            url: Listing page URL

        Returns:
            Link URLs in page order

        Raises:
            SourceFetchError: If the links cannot be retrieved
        """
        try:
            response = self._request_with_retry(
                'POST',
                self.FIRECRAWL_URL,
                headers={'Authorization': f"Bearer {self.firecrawl_api_key}"},
                json={
                    'url': url,
                    'formats': ['links'],
                    'onlyMainContent': True,
                    'timeout': self.timeout * 1000,
                },
            )
        except requests.RequestException as e:
            raise SourceFetchError(url, f"Error scraping links from {url[:50]}: {e}") from e

        data = response.json().get('data') or {}
        links = data.get('links') or (data.get('metadata') or {}).get('links') or []
        logger.info(f"Firecrawl found {len(links)} links on {url}")
        return [link for link in links if isinstance(link, str)]

    def _fetch_firecrawl(self, url: str) -> str:
        response = self._request_with_retry(
            'POST',
            self.FIRECRAWL_URL,
            headers={'Authorization': f"Bearer {self.firecrawl_api_key}"},
            json={
                'url': url,
                'formats': ['markdown', 'html'],
                'waitFor': self.WAIT_FOR_MS,
                'timeout': self.timeout * 1000,
            },
        )
        data = response.json().get('data') or {}
        markdown = data.get('markdown')
        if markdown:
            return markdown
        html = data.get('html')
        return self.html_to_text(html) if html else ''

    def _fetch_scrapfly(self, url: str) -> str:
        response = self._request_with_retry(
            'GET',
            self.SCRAPFLY_URL,
            params={
                'key': self.scrapfly_api_key,
                'url': url,
                'render_js': 'true',
                'format': 'markdown',
                'asp': 'true',
            },
        )
        result = response.json().get('result') or {}
        return result.get('content') or ''

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Issue a request with exponential backoff.

        Client errors other than 429 are not retried.

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        last_error: Optional[requests.RequestException] = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.request(
                    method,
                    endpoint,
                    timeout=self.timeout + 10,
                    **kwargs
                )
                response.raise_for_status()
                return response

            except requests.RequestException as e:
                last_error = e
                status = e.response.status_code if e.response is not None else None
                if status is not None and status < 500 and status != 429:
                    raise

                if attempt < self.max_retries - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request to {endpoint} failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)

        logger.error(f"All {self.max_retries} attempts to {endpoint} failed. Last error: {last_error}")
        raise last_error

    @staticmethod
    def html_to_text(html: str) -> str:
        """Strip markup, scripts and page chrome from HTML."""
        soup = BeautifulSoup(html, 'html.parser')
        for tag in soup(['script', 'style', 'noscript', 'header', 'footer', 'nav']):
            tag.decompose()
        return soup.get_text(separator='\n', strip=True)
