"""
Scheduler Tests

Tests for crawl-delay pacing, robots handling, backpressure against the
high water mark, drain detection and shutdown.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from crawlrank.crawler.frontier import Frontier
from crawlrank.crawler.scheduler import Scheduler, SchedulerConfig

from conftest import FakeFetcher


class FakeClock:
    """Simulated monotonic clock; sleeping advances it."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.now += delay
        await asyncio.sleep(0)


def _make_scheduler(clock, fetcher, seeds, **config):
    frontier = Frontier(max_depth=3, clock=clock)
    frontier.seed(seeds)
    config.setdefault("resolve_dns", False)
    scheduler = Scheduler(
        frontier,
        fetcher,
        SchedulerConfig(**config),
        clock=clock,
        sleep=clock.sleep,
    )
    return scheduler, frontier


async def _drain(scheduler):
    pages = []
    while (page := await scheduler.dequeue()) is not None:
        pages.append(page)
    return pages


def _html(text):
    return f"<html><head><title>{text}</title></head><body><p>{text}</p></body></html>"


class TestPacing:
    @pytest.mark.asyncio
    async def test_crawl_delay_between_fetches(self):
        clock = FakeClock()
        urls = ["http://example.com/a", "http://example.com/b"]
        fetcher = FakeFetcher(
            clock,
            pages={url: _html("page") for url in urls},
            robots={"example.com": "User-agent: *\nCrawl-delay: 5\n"},
        )
        scheduler, _ = _make_scheduler(clock, fetcher, urls)

        pages = await _drain(scheduler)

        assert [p.url for p in pages] == urls
        times = [t for t, _ in fetcher.fetched]
        assert times == [pytest.approx(0.0), pytest.approx(5.0)]

    @pytest.mark.asyncio
    async def test_without_crawl_delay_waits_twice_the_response_time(self):
        clock = FakeClock()
        urls = ["http://example.com/a", "http://example.com/b"]
        fetcher = FakeFetcher(clock, pages={url: _html("page") for url in urls})
        scheduler, _ = _make_scheduler(clock, fetcher, urls)

        await _drain(scheduler)

        times = [t for t, _ in fetcher.fetched]
        assert times == [pytest.approx(0.0), pytest.approx(0.2)]

    @pytest.mark.asyncio
    async def test_domains_fetched_in_parallel(self):
        clock = FakeClock()
        urls = ["http://a.com/x", "http://b.com/x", "http://c.com/x"]
        fetcher = FakeFetcher(
            clock,
            pages={url: _html("page") for url in urls},
            robots={
                host: "User-agent: *\nCrawl-delay: 30\n"
                for host in ("a.com", "b.com", "c.com")
            },
        )
        scheduler, _ = _make_scheduler(clock, fetcher, urls)

        pages = await _drain(scheduler)

        assert len(pages) == 3
        assert all(t == pytest.approx(0.0) for t, _ in fetcher.fetched)

    @pytest.mark.asyncio
    async def test_exhausted_domain_relaxes(self):
        clock = FakeClock()
        url = "http://example.com/a"
        fetcher = FakeFetcher(clock, pages={url: _html("page")})
        scheduler, frontier = _make_scheduler(clock, fetcher, [url], relax_time=600.0)

        await _drain(scheduler)

        domain = frontier.get_domain("example.com")
        assert domain is not None
        assert domain.wake_up == pytest.approx(600.0)
        assert frontier.pending_domains == 0

    @pytest.mark.asyncio
    async def test_links_collected_after_dequeue_revive_relaxing_domain(self):
        clock = FakeClock()
        fetcher = FakeFetcher(
            clock,
            pages={
                "http://example.com/a": '<html><body><a href="/b">Next</a></body></html>',
                "http://example.com/b": _html("second"),
            },
        )
        scheduler, frontier = _make_scheduler(
            clock, fetcher, ["http://example.com/a"], relax_time=600.0
        )

        first = await scheduler.dequeue()
        assert frontier.get_domain("example.com").relaxing is True

        assert frontier.collect(first.depth, first.penalty, first.links) == 1
        assert frontier.pending_domains == 1
        second = await scheduler.dequeue()

        assert second.url == "http://example.com/b"
        times = [t for t, _ in fetcher.fetched]
        assert times == [pytest.approx(0.0), pytest.approx(0.2)]


class TestRobots:
    @pytest.mark.asyncio
    async def test_disallowed_pages_never_fetched(self):
        clock = FakeClock()
        fetcher = FakeFetcher(
            clock,
            pages={
                "http://example.com/private/x": _html("secret"),
                "http://example.com/public": _html("open"),
            },
            robots={"example.com": "User-agent: *\nDisallow: /private\n"},
        )
        scheduler, frontier = _make_scheduler(
            clock,
            fetcher,
            ["http://example.com/private/x", "http://example.com/public"],
        )

        pages = await _drain(scheduler)

        assert [p.url for p in pages] == ["http://example.com/public"]
        assert [url for _, url in fetcher.fetched] == ["http://example.com/public"]
        assert frontier.pending_pages == 0

    @pytest.mark.asyncio
    async def test_unresolvable_domain_dropped(self):
        clock = FakeClock()
        fetcher = FakeFetcher(
            clock,
            pages={"http://alive.com/a": _html("alive")},
            dead_hosts={"dead.com"},
        )
        scheduler, frontier = _make_scheduler(
            clock,
            fetcher,
            ["http://dead.com/a", "http://dead.com/b", "http://alive.com/a"],
            resolve_dns=True,
        )

        pages = await _drain(scheduler)

        assert [p.url for p in pages] == ["http://alive.com/a"]
        assert [url for _, url in fetcher.fetched] == ["http://alive.com/a"]
        assert frontier.stats()["dead_hosts"] == 1
        assert frontier.pending_pages == 0


class TestPages:
    @pytest.mark.asyncio
    async def test_page_carries_extraction_and_position(self):
        clock = FakeClock()
        url = "http://example.com/a"
        body = '<html><title>Hello</title><body><a href="/b">Next page</a></body></html>'
        fetcher = FakeFetcher(clock, pages={url: body})
        scheduler, _ = _make_scheduler(clock, fetcher, [url])

        pages = await _drain(scheduler)

        assert len(pages) == 1
        page = pages[0]
        assert page.title == "Hello"
        assert page.depth == 1
        assert page.penalty == 0
        assert [link.url for link in page.links] == ["http://example.com/b"]
        assert scheduler.downloaded == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_yields_no_page(self):
        clock = FakeClock()
        fetcher = FakeFetcher(clock)
        scheduler, _ = _make_scheduler(clock, fetcher, ["http://example.com/gone"])

        assert await _drain(scheduler) == []
        assert scheduler.downloaded == 1
        assert scheduler.in_flight == 0

    @pytest.mark.asyncio
    async def test_extraction_error_does_not_stop_the_crawl(self):
        clock = FakeClock()
        urls = ["http://a.com/x", "http://b.com/x"]
        fetcher = FakeFetcher(clock, pages={url: _html("page") for url in urls})
        frontier = Frontier(clock=clock)
        frontier.seed(urls)
        scheduler = Scheduler(
            frontier,
            fetcher,
            SchedulerConfig(resolve_dns=False),
            extract_func=MagicMock(side_effect=ValueError("broken page")),
            clock=clock,
            sleep=clock.sleep,
        )

        assert await _drain(scheduler) == []
        assert scheduler.downloaded == 2


class TestBackpressure:
    @pytest.mark.asyncio
    async def test_high_water_mark_bounds_work(self):
        clock = FakeClock()
        urls = [f"http://site{i}.com/x" for i in range(5)]
        gate = asyncio.Event()
        fetcher = FakeFetcher(
            clock, pages={url: _html("page") for url in urls}, gate=gate
        )
        scheduler, _ = _make_scheduler(clock, fetcher, urls, high_water_mark=2)

        levels = []
        fetcher.on_download = lambda url: levels.append(
            scheduler.in_flight + scheduler.stats()["finished"]
        )

        first = asyncio.create_task(scheduler.dequeue())
        for _ in range(10):
            await asyncio.sleep(0)
        assert scheduler.in_flight == 2
        assert len(fetcher.fetched) == 2

        gate.set()
        pages = [await first, *await _drain(scheduler)]

        assert len(pages) == 5
        assert max(levels) <= 2

    @pytest.mark.asyncio
    async def test_undequeued_pages_hold_slots(self):
        clock = FakeClock()
        urls = [f"http://site{i}.com/x" for i in range(3)]
        fetcher = FakeFetcher(clock, pages={url: _html("page") for url in urls})
        scheduler, _ = _make_scheduler(clock, fetcher, urls, high_water_mark=2)

        first = await scheduler.dequeue()
        assert first is not None
        # Let the second worker finish without a consumer
        for _ in range(200):
            await asyncio.sleep(0.01)
            if scheduler.in_flight == 0:
                break

        assert scheduler.stats()["finished"] == 1
        assert len(fetcher.fetched) == 2

        rest = await _drain(scheduler)
        assert len(rest) == 2


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_stops_new_work(self):
        clock = FakeClock()
        urls = [f"http://site{i}.com/x" for i in range(3)]
        fetcher = FakeFetcher(clock, pages={url: _html("page") for url in urls})
        scheduler, frontier = _make_scheduler(clock, fetcher, urls, high_water_mark=1)

        assert await scheduler.dequeue() is not None
        scheduler.shutdown()

        assert scheduler.is_shut_down is True
        assert await scheduler.dequeue() is None
        assert len(fetcher.fetched) == 1
        assert frontier.pending_pages == 2
        await scheduler.close()

    @pytest.mark.asyncio
    async def test_empty_frontier_drains_immediately(self):
        clock = FakeClock()
        scheduler, _ = _make_scheduler(clock, FakeFetcher(clock), [])
        assert await scheduler.dequeue() is None
