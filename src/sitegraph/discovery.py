"""Breadth-first URL discovery that feeds a single-writer URL pool.

Fetch workers run concurrently but never touch the pool. Every link they find
is posted to an inbox queue, and one writer task owns all ``pool.add`` calls,
deciding which new URLs join the crawl frontier.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from .filters import UrlMatchStrategy, filter_links, is_skippable, matches_strategy
from .models import PageRecord, UrlSource
from .pool import UniqueUrlPool
from .resources import ResourceMonitor

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 50
DEFAULT_MAX_DEPTH = 3


class CrawlOptions(BaseModel):
    max_pages: int = Field(default=DEFAULT_MAX_PAGES, ge=1, description="Maximum pages to fetch")
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0, description="Maximum link depth from a seed")
    max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        description="Concurrent fetches; None sizes the pool from system resources",
    )
    crawl_scope: UrlMatchStrategy = Field(
        default=UrlMatchStrategy.SAME_DOMAIN,
        description="Which discovered URLs are fetched, relative to the page they were found on",
    )
    save_scope: UrlMatchStrategy = Field(
        default=UrlMatchStrategy.ALL,
        description="Which discovered URLs are recorded in the pool",
    )
    page_timeout: int = Field(default=30000, description="Per-page timeout in milliseconds")


class CrawlResult(BaseModel):
    """Everything a discovery run produced."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    seeds: list[str] = Field(default_factory=list)
    pool: UniqueUrlPool
    pages: list[PageRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def pages_crawled(self) -> int:
        return sum(1 for page in self.pages if page.success)

    @property
    def pages_failed(self) -> int:
        return sum(1 for page in self.pages if not page.success)


@dataclass(frozen=True)
class _Discovered:
    url: str
    depth: int
    referer: Optional[str]
    source: UrlSource


async def discover_urls(
    seeds: Iterable[str],
    options: Optional[CrawlOptions] = None,
    crawl_manager=None,
    pool: Optional[UniqueUrlPool] = None,
) -> CrawlResult:
    """Crawl outward from ``seeds`` and collect every discovered URL.

    Args:
        seeds: Starting URLs; always fetched, whatever the crawl scope.
        options: Limits and scoping rules.
        crawl_manager: Anything with ``async fetch(url, depth, referer) -> PageRecord``
            and ``async close()``. A crawl4ai ``CrawlManager`` is created (and
            closed) when omitted.
        pool: Pool to populate; a fresh one is created when omitted.

    Returns:
        CrawlResult with the pool and one PageRecord per fetched page.
    """
    options = options or CrawlOptions()
    seeds = list(seeds)
    pool = pool if pool is not None else UniqueUrlPool()
    result = CrawlResult(seeds=seeds, pool=pool)

    max_workers = options.max_workers
    if max_workers is None:
        resource_monitor = ResourceMonitor()
        max_workers = resource_monitor.calculate_optimal_workers(pending=options.max_pages)
        logger.info(f"Resource snapshot: {resource_monitor.get_snapshot().model_dump()}")

    owns_manager = crawl_manager is None
    if crawl_manager is None:
        from .crawler import CrawlManager

        crawl_manager = CrawlManager(page_timeout=options.page_timeout)

    logger.info(f"Starting discovery from {len(seeds)} seeds with max_workers={max_workers}")

    inbox: asyncio.Queue = asyncio.Queue()
    frontier: asyncio.Queue = asyncio.Queue()
    semaphore = asyncio.Semaphore(max_workers)
    total_queued = 0

    def _should_crawl(item: _Discovered, href: str) -> bool:
        if total_queued >= options.max_pages:
            return False
        if item.depth > options.max_depth:
            return False
        if is_skippable(href):
            return False
        if item.referer is None:
            return True
        return matches_strategy(href, item.referer, options.crawl_scope)

    async def _pool_writer() -> None:
        """Sole owner of pool mutation."""
        nonlocal total_queued
        while True:
            item = await inbox.get()
            try:
                identity = pool.identify(item.url, depth=item.depth, referer=item.referer, source=item.source)
                if pool.add(identity) and identity.parsable and _should_crawl(item, identity.normalized):
                    frontier.put_nowait((identity.normalized, item.depth, item.referer))
                    total_queued += 1
            except Exception as e:
                logger.warning(f"Could not record {item.url!r}: {e}")
                result.errors.append(f"{item.url!r}: {e}")
            finally:
                inbox.task_done()

    async def _process_page(page_url: str, depth: int, referer: Optional[str]) -> None:
        async with semaphore:
            logger.debug(f"Fetching: {page_url}")
            try:
                record = await crawl_manager.fetch(page_url, depth=depth, referer=referer)
            except Exception as e:
                logger.warning(f"Fetch raised for {page_url}: {e}")
                record = PageRecord(url=page_url, depth=depth, referer=referer, error=str(e))

            result.pages.append(record)
            if not record.success:
                result.errors.append(f"{page_url}: {record.error}")
                return

            links = filter_links(record.links, page_url, options.save_scope)
            for link in links:
                inbox.put_nowait(_Discovered(link, depth + 1, page_url, UrlSource.PAGE))
            logger.debug(f"  {page_url} yielded {len(links)} links")

    writer = asyncio.create_task(_pool_writer())
    try:
        for seed in seeds:
            inbox.put_nowait(_Discovered(seed, 0, None, UrlSource.IMPORT))
        await inbox.join()

        # Drain the frontier in waves; each wave's links are fully written
        # to the pool before the next wave is collected.
        while not frontier.empty():
            wave = []
            while not frontier.empty():
                wave.append(frontier.get_nowait())

            logger.info(f"  Wave: fetching {len(wave)} pages...")
            await asyncio.gather(*(_process_page(*entry) for entry in wave))
            await inbox.join()

        logger.info(
            f"Done: {len(pool)} unique URLs from {result.pages_crawled} pages "
            f"({total_queued} queued, {result.pages_failed} failed, "
            f"{len(pool.unparsable)} unparsable)"
        )
    finally:
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        if owns_manager:
            await crawl_manager.close()

    return result
