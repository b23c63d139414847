"""
Crawl Session

Seeds the frontier, pulls finished pages from the scheduler, indexes them
and feeds newly discovered links back into the frontier.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from crawlrank.crawler.fetcher import MAX_RESPONSE_SIZE, Fetcher
from crawlrank.crawler.frontier import Frontier
from crawlrank.crawler.metrics import PAGES_INDEXED
from crawlrank.crawler.scheduler import Scheduler, SchedulerConfig
from crawlrank.search.indexer import IndexBuilder

logger = logging.getLogger(__name__)

PageCallback = Callable[[str], None]


@dataclass
class CrawlOptions:
    max_depth: int = 3
    loose: bool = False
    # Minutes
    relax_time: float = 10.0
    # Seconds
    timeout: float = 15.0
    dns_timeout: float = 5.0
    high_water_mark: int = 64
    max_bytes: int = MAX_RESPONSE_SIZE
    ignore_nofollow: bool = False
    link_stem_limit: int = 10
    languages: list[str] = field(default_factory=lambda: ["en", "ru"])
    info_interval: int = 100


class CrawlSession:
    def __init__(
        self,
        db_path: str,
        seeds: list[str],
        options: CrawlOptions | None = None,
        fetcher: Fetcher | None = None,
        on_indexed: PageCallback | None = None,
    ):
        self.db_path = db_path
        self.seeds = seeds
        self.options = options or CrawlOptions()
        self.on_indexed = on_indexed

        opts = self.options
        self.fetcher = fetcher or Fetcher(
            timeout=opts.timeout,
            max_bytes=opts.max_bytes,
            languages=opts.languages,
            dns_timeout=opts.dns_timeout,
        )
        self.frontier = Frontier(max_depth=opts.max_depth, loose=opts.loose)
        self.scheduler = Scheduler(
            self.frontier,
            self.fetcher,
            SchedulerConfig(
                high_water_mark=opts.high_water_mark,
                relax_time=opts.relax_time * 60,
                ignore_nofollow=opts.ignore_nofollow,
                link_stem_limit=opts.link_stem_limit,
            ),
        )
        self.indexed = 0

    @property
    def downloaded(self) -> int:
        return self.scheduler.downloaded

    def shutdown(self) -> None:
        self.scheduler.shutdown()

    async def run(self, max_pages: int | None = None) -> int:
        """Crawl until drained, shut down or `max_pages` pages are indexed.

        Returns:
            Number of pages indexed
        """
        # Opening the store first: a broken database ends the session early
        indexer = IndexBuilder(self.db_path)
        loop = asyncio.get_running_loop()
        try:
            queued = self.frontier.seed(self.seeds)
            logger.info(f"Crawl started with {queued} seed pages")

            async with self.fetcher:
                try:
                    await self._loop(indexer, loop, max_pages)
                finally:
                    await self.scheduler.close()

            await loop.run_in_executor(None, indexer.update_info)
        finally:
            indexer.close()

        logger.info(
            f"Crawl finished: {self.downloaded} downloaded, {self.indexed} indexed"
        )
        return self.indexed

    async def _loop(self, indexer: IndexBuilder, loop, max_pages: int | None) -> None:
        while True:
            page = await self.scheduler.dequeue()
            if page is None:
                break

            discovered = await loop.run_in_executor(None, indexer.index, page)
            self.frontier.collect(page.depth, page.penalty, discovered)

            self.indexed += 1
            PAGES_INDEXED.inc()
            if self.on_indexed is not None:
                self.on_indexed(page.url)

            if self.indexed % self.options.info_interval == 0:
                await loop.run_in_executor(None, indexer.update_info)

            if max_pages is not None and self.indexed >= max_pages:
                logger.info(f"Reached page limit ({max_pages})")
                self.shutdown()
