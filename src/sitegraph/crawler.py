"""Crawl4ai-backed page fetcher that reports the links on each page."""

import logging
import os
import sys
from typing import Optional

# Fix Windows charmap encoding issues before importing crawl4ai
if sys.platform == "win32":
    os.environ.setdefault("PYTHONUTF8", "1")

from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from .models import PageRecord

logger = logging.getLogger(__name__)

DEFAULT_PAGE_TIMEOUT_MS = 30000


class CrawlManager:
    """Fetches pages with a shared headless browser and collects their links.

    Everything past "here are the links on this page" (scoping, dedup,
    hierarchy) happens elsewhere.
    """

    def __init__(self, page_timeout: int = DEFAULT_PAGE_TIMEOUT_MS, include_external: bool = True) -> None:
        self.page_timeout = page_timeout
        self.include_external = include_external
        self._crawler: Optional[AsyncWebCrawler] = None

    async def _ensure_crawler(self) -> AsyncWebCrawler:
        """Lazy-init the crawl4ai crawler."""
        if self._crawler is None:
            browser_config = BrowserConfig(
                headless=True,
                text_mode=True,
                verbose=False,
            )
            self._crawler = AsyncWebCrawler(config=browser_config)
            await self._crawler.start()
        return self._crawler

    async def fetch(self, url: str, depth: int = 0, referer: Optional[str] = None) -> PageRecord:
        """Fetch ``url`` and return a record of the page and its raw link hrefs.

        Fetch errors are logged and reported on the record, never raised.
        """
        crawler = await self._ensure_crawler()
        config = CrawlerRunConfig(
            cache_mode=CacheMode.BYPASS,
            wait_until="domcontentloaded",
            page_timeout=self.page_timeout,
        )
        record = PageRecord(url=url, depth=depth, referer=referer)

        try:
            result = await crawler.arun(url=url, config=config)
        except Exception as e:
            logger.warning(f"Crawl failed for {url}: {e}")
            record.error = str(e)
            return record

        record.status_code = getattr(result, "status_code", None)
        if not result.success:
            logger.warning(f"Crawl unsuccessful for {url}: {result.error_message}")
            record.error = result.error_message
            return record

        groups = ["internal", "external"] if self.include_external else ["internal"]
        links = result.links or {}
        for group in groups:
            for link in links.get(group, []):
                href = link.get("href") if isinstance(link, dict) else link
                if href:
                    record.links.append(href)
        record.success = True
        return record

    async def close(self) -> None:
        """Clean up crawler/browser resources."""
        if self._crawler:
            try:
                await self._crawler.close()
            except Exception as e:
                logger.debug(f"Error closing crawler: {e}")
            self._crawler = None
