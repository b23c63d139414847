"""
Scheduler - Politeness-Aware Crawl Workers

Runs a bounded pool of asyncio worker tasks over the Frontier. Each worker
takes one due domain, fetches robots.txt on first contact, fetches one
page, extracts it and re-admits the domain with a new wake-up time.

Finished pages wait in an output queue until `dequeue()` pulls them; they
count against the concurrency ceiling, so a slow consumer throttles the
crawl instead of buffering pages in memory.
"""

import asyncio
import functools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from crawlrank.crawler.fetcher import Fetcher
from crawlrank.crawler.frontier import Domain, Frontier
from crawlrank.crawler.metrics import WORKERS_IN_FLIGHT
from crawlrank.crawler.parser import ExtractedLink, ExtractedPage, WordStat, extract
from crawlrank.crawler.robots import fetch_rules

logger = logging.getLogger(__name__)

ExtractFunc = Callable[..., ExtractedPage]
SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class CrawledPage:
    url: str
    depth: int
    penalty: int
    title: str
    words: list[WordStat] = field(default_factory=list)
    word_count: int = 0
    head_count: int = 0
    links: list[ExtractedLink] = field(default_factory=list)


@dataclass
class SchedulerConfig:
    # Maximum workers in flight plus finished pages not yet dequeued
    high_water_mark: int = 64
    # Seconds a domain without pages is kept before eviction
    relax_time: float = 600.0
    ignore_nofollow: bool = False
    link_stem_limit: int = 10
    # Longest sleep of a worker waiting for a domain to become due
    poll_interval: float = 1.0
    resolve_dns: bool = True


class Scheduler:
    def __init__(
        self,
        frontier: Frontier,
        fetcher: Fetcher,
        config: SchedulerConfig | None = None,
        extract_func: ExtractFunc = extract,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.frontier = frontier
        self.fetcher = fetcher
        self.config = config or SchedulerConfig()
        self._extract = extract_func
        self._clock = clock
        self._sleep = sleep

        self._finished: deque[CrawledPage] = deque()
        self._waiters: deque[asyncio.Future] = deque()
        self._tasks: set[asyncio.Task] = set()
        self._in_flight = 0
        self._idle = 0
        self._shutdown = False
        self.downloaded = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown

    async def dequeue(self) -> CrawledPage | None:
        """Next finished page, or None once the crawl is drained or shut down."""
        if self._finished:
            page = self._finished.popleft()
            self._refill()
            return page

        self._refill()
        if self._in_flight == 0:
            return None

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return await waiter

    def shutdown(self) -> None:
        """Stop spawning workers; running fetches finish normally."""
        if not self._shutdown:
            logger.info(f"Scheduler shutting down ({self._in_flight} in flight)")
        self._shutdown = True

    async def close(self) -> None:
        self.shutdown()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _refill(self) -> None:
        if self._shutdown:
            return
        slots = self.config.high_water_mark - self._in_flight - len(self._finished)
        if slots <= 0:
            return
        # One worker per queued domain; idle workers already wait for one
        spawn = min(slots, self.frontier.pending_domains - self._idle)
        for _ in range(spawn):
            self._spawn()

    def _spawn(self) -> None:
        self._in_flight += 1
        WORKERS_IN_FLIGHT.inc()
        task = asyncio.create_task(self._worker())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _worker(self) -> None:
        page = None
        try:
            domain = await self._acquire_domain()
            if domain is not None:
                page = await self._process_domain(domain)
        except Exception:
            logger.exception("Unexpected error in crawl worker")
        finally:
            self._in_flight -= 1
            WORKERS_IN_FLIGHT.dec()
            self._complete(page)

    def _complete(self, page: CrawledPage | None) -> None:
        if page is not None:
            waiter = self._pop_waiter()
            if waiter is not None:
                waiter.set_result(page)
            else:
                self._finished.append(page)
            return

        self._refill()
        if self._in_flight == 0 and not self._finished:
            while (waiter := self._pop_waiter()) is not None:
                waiter.set_result(None)

    def _pop_waiter(self) -> asyncio.Future | None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    async def _acquire_domain(self) -> Domain | None:
        while not self._shutdown:
            now = self._clock()
            domain = self.frontier.acquire_domain(now)
            if domain is not None:
                return domain
            if self.frontier.pending_domains == 0:
                return None

            next_wake_up = self.frontier.next_wake_up()
            delay = self.config.poll_interval
            if next_wake_up is not None:
                delay = min(max(next_wake_up - now, 0.0), delay)

            self._idle += 1
            try:
                await self._sleep(delay)
            finally:
                self._idle -= 1
        return None

    async def _process_domain(self, domain: Domain) -> CrawledPage | None:
        dropped = False
        try:
            if domain.rules is None:
                dropped = not await self._fetch_robots(domain)
                if dropped:
                    return None

            entry = self.frontier.seize_page(domain)
            if entry is None:
                return None

            started = self._clock()
            response = await self.fetcher.download(entry.url)
            self.downloaded += 1

            page = None
            if response is not None and self.fetcher.accept(response):
                extracted = await asyncio.get_running_loop().run_in_executor(
                    None,
                    functools.partial(
                        self._extract,
                        response.text,
                        entry.url,
                        url_filter=self.frontier.is_allowed,
                        ignore_nofollow=self.config.ignore_nofollow,
                        link_stem_limit=self.config.link_stem_limit,
                    ),
                )
                page = CrawledPage(
                    url=entry.url,
                    depth=entry.depth,
                    penalty=entry.penalty,
                    title=extracted.title,
                    words=extracted.words,
                    word_count=extracted.word_count,
                    head_count=extracted.head_count,
                    links=extracted.links,
                )

            if domain.crawl_delay:
                domain.wake_up = started + domain.crawl_delay
            elif response is not None:
                domain.wake_up = started + 2 * response.elapsed
            else:
                domain.wake_up = self._clock()
            return page

        finally:
            if not dropped:
                self.frontier.release_domain(domain, self.config.relax_time)

    async def _fetch_robots(self, domain: Domain) -> bool:
        """Resolve the host and load robots.txt; False if the host is unreachable."""
        if self.config.resolve_dns:
            address = await self.fetcher.resolve(domain.host)
            if address is None:
                self.frontier.drop_domain(domain)
                return False
            domain.address = address

        robots = await fetch_rules(self.fetcher, domain.base_url)
        domain.rules = robots.rules
        domain.crawl_delay = robots.crawl_delay
        return True

    def stats(self) -> dict:
        return {
            "in_flight": self._in_flight,
            "idle": self._idle,
            "finished": len(self._finished),
            "downloaded": self.downloaded,
            "shutdown": self._shutdown,
            "frontier": self.frontier.stats(),
        }
