"""
Frontier - Pending Pages and Domains

Seen-URL dedup, a per-domain priority queue of pending pages ordered by
(depth, penalty) and a global queue of domains ordered by wake-up time.
"""

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

from crawlrank.core.utils import get_domain, guess_relevant, normalize_url, url_path
from crawlrank.crawler.metrics import DOMAINS_DROPPED, ROBOTS_BLOCKED
from crawlrank.crawler.robots import Rule, is_disallowed
from crawlrank.db.seen_store import SeenStore

logger = logging.getLogger(__name__)


class Link(Protocol):
    url: str
    penalty: int


@dataclass
class SeedLink:
    url: str
    penalty: int = 0


@dataclass
class PageEntry:
    url: str
    path: str
    depth: int
    penalty: int


@dataclass
class Domain:
    host: str
    secure: bool
    wake_up: float
    # None until robots.txt was fetched
    rules: list[Rule] | None = None
    crawl_delay: float | None = None
    address: str | None = None
    pages: list[tuple[int, int, int, PageEntry]] = field(default_factory=list)
    # Parked with no pages; wake_up is the relax deadline, ready_at the pacing one
    relaxing: bool = False
    ready_at: float | None = None
    # Sequence number of the live queue entry, None while acquired
    entry: int | None = None

    @property
    def base_url(self) -> str:
        return f"{'https' if self.secure else 'http'}://{self.host}"


def page_key(entry: PageEntry, seq: int) -> tuple[int, int, int]:
    """Shallower pages first, then lower penalty, then insertion order."""
    return (entry.depth, entry.penalty, seq)


def domain_key(domain: Domain, seq: int) -> tuple[float, int]:
    """Earliest wake-up first, then insertion order."""
    return (domain.wake_up, seq)


class Frontier:
    """
    Known URLs plus pending pages grouped by domain.

    Not thread-safe: mutate from the event loop only. `is_allowed` only
    reads and may be called from the extractor's executor thread.
    """

    def __init__(
        self,
        max_depth: int = 3,
        loose: bool = False,
        clock: Callable[[], float] = time.monotonic,
        seen: SeenStore | None = None,
    ):
        self.max_depth = max_depth
        self.loose = loose
        self._clock = clock
        self._seen = seen or SeenStore(max_depth)
        self._domains: dict[str, Domain] = {}
        self._heap: list[tuple[float, int, Domain]] = []
        self._dead_hosts: set[str] = set()
        self._seq = itertools.count()
        self._pending_pages = 0
        self._pending_domains = 0

    @property
    def pending_pages(self) -> int:
        """Pages queued in any domain, acquired or not."""
        return self._pending_pages

    @property
    def pending_domains(self) -> int:
        """Domains waiting in the queue that still have pages."""
        return self._pending_domains

    def get_domain(self, host: str) -> Domain | None:
        return self._domains.get(host)

    def is_seen(self, url: str) -> bool:
        return self._seen.is_seen(url)

    def is_allowed(self, url: str) -> bool:
        """Relevance guess plus robots rules of the domain, if known."""
        if not guess_relevant(url, self.loose):
            return False
        domain = self._domains.get(get_domain(url))
        if domain is not None and domain.rules:
            return not is_disallowed(domain.rules, url_path(url))
        return True

    def seed(self, urls: Iterable[str]) -> int:
        links = []
        for raw in urls:
            url = normalize_url("", raw)
            if url is None or not self.is_allowed(url):
                logger.info(f"Skipping seed: {raw}")
                continue
            links.append(SeedLink(url))
        return self.collect(0, 0, links)

    def collect(self, source_depth: int, source_penalty: int, links: Iterable[Link]) -> int:
        """Queue unseen links found on a page at `source_depth`.

        Returns the number of pages queued.
        """
        if source_depth >= self.max_depth:
            return 0

        queued = 0
        for link in links:
            if self._seen.is_seen(link.url):
                continue
            host = get_domain(link.url)
            if host in self._dead_hosts:
                continue
            self._seen.mark_seen(link.url)

            domain = self._domains.get(host)
            if domain is None:
                domain = self._create_domain(host, link.url.startswith("https:"))
            elif domain.relaxing:
                self._revive(domain)

            entry = PageEntry(
                url=link.url,
                path=url_path(link.url),
                depth=source_depth + 1,
                penalty=source_penalty + link.penalty,
            )
            seq = next(self._seq)
            heapq.heappush(domain.pages, (*page_key(entry, seq), entry))
            self._pending_pages += 1
            if len(domain.pages) == 1 and domain.entry is not None:
                self._pending_domains += 1
            queued += 1
        return queued

    def _create_domain(self, host: str, secure: bool) -> Domain:
        domain = Domain(host=host, secure=secure, wake_up=self._clock())
        self._domains[host] = domain
        self._push(domain)
        return domain

    def _push(self, domain: Domain) -> None:
        seq = next(self._seq)
        domain.entry = seq
        heapq.heappush(self._heap, (*domain_key(domain, seq), domain))
        if domain.pages:
            self._pending_domains += 1

    def _revive(self, domain: Domain) -> None:
        """Requeue a relaxing domain at its pacing time; the old entry goes stale."""
        domain.relaxing = False
        domain.wake_up = domain.ready_at if domain.ready_at is not None else self._clock()
        domain.ready_at = None
        self._push(domain)
        logger.debug(f"Revived relaxing domain {domain.host}")

    def _discard_stale(self) -> None:
        while self._heap and self._heap[0][1] != self._heap[0][2].entry:
            heapq.heappop(self._heap)

    def acquire_domain(self, now: float | None = None) -> Domain | None:
        """Take the earliest due domain that has pages, or None.

        Due domains whose page queue drained are evicted on the way.
        """
        if now is None:
            now = self._clock()
        while True:
            self._discard_stale()
            if not self._heap:
                return None
            wake_up, _, domain = self._heap[0]
            if wake_up > now:
                return None
            heapq.heappop(self._heap)
            domain.entry = None
            if domain.pages:
                self._pending_domains -= 1
                return domain
            # Relax time is up
            self._domains.pop(domain.host, None)
            logger.debug(f"Evicted idle domain {domain.host}")

    def next_wake_up(self) -> float | None:
        self._discard_stale()
        return self._heap[0][0] if self._heap else None

    def seize_page(self, domain: Domain) -> PageEntry | None:
        """Pop the best page of `domain`, discarding robots-disallowed ones."""
        while domain.pages:
            entry = heapq.heappop(domain.pages)[-1]
            self._pending_pages -= 1
            if domain.rules and is_disallowed(domain.rules, entry.path):
                logger.debug(f"Blocked by robots.txt: {entry.url}")
                ROBOTS_BLOCKED.inc()
                continue
            return entry
        return None

    def release_domain(self, domain: Domain, relax_time: float = 0.0) -> None:
        """Requeue an acquired domain at its wake-up time.

        A domain left without pages is parked for `relax_time` seconds
        instead; pages collected meanwhile bring it back at once.
        """
        if not domain.pages and relax_time > 0:
            domain.relaxing = True
            domain.ready_at = domain.wake_up
            domain.wake_up = self._clock() + relax_time
        self._push(domain)

    def drop_domain(self, domain: Domain) -> None:
        """Forget an unreachable domain for the rest of the session."""
        self._dead_hosts.add(domain.host)
        if domain.entry is not None and domain.pages:
            self._pending_domains -= 1
        domain.entry = None
        self._pending_pages -= len(domain.pages)
        domain.pages.clear()
        self._domains.pop(domain.host, None)
        DOMAINS_DROPPED.inc()
        logger.info(f"Dropped unreachable domain {domain.host}")

    def stats(self) -> dict:
        return {
            "domains": len(self._domains),
            "queued_domains": sum(
                1 for domain in self._domains.values() if domain.entry is not None
            ),
            "pending_pages": self._pending_pages,
            "dead_hosts": len(self._dead_hosts),
            "seen": self._seen.stats(),
        }
