"""Test fixtures for crawlrank tests."""

import os
from urllib.parse import urlsplit

# Set ENVIRONMENT before importing any modules that read the settings
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from crawlrank.analyzer import stemmer
from crawlrank.crawler.fetcher import Fetcher, Response
from crawlrank.crawler.parser import ExtractedLink, WordStat
from crawlrank.crawler.scheduler import CrawledPage
from crawlrank.db.search import ensure_db


@pytest.fixture
def test_db_path(tmp_path):
    """Provide a temporary database path with the schema applied."""
    db_file = str(tmp_path / "test.db")
    ensure_db(db_file)
    return db_file


def make_page(url, body="", heading="", links=(), title="", depth=1, penalty=0):
    """Build a CrawledPage from plain text the way the extractor would."""
    words: dict[str, WordStat] = {}
    word_count = 0
    head_count = 0
    for text, is_heading in ((title, True), (heading, True), (body, False)):
        for stem in stemmer.tokenize_and_stem(text):
            word_count += 1
            head_count += is_heading
            stat = words.setdefault(stem, WordStat(stem=stem, position=word_count))
            stat.body_count += 1
            stat.head_count += is_heading

    page_links = []
    for link in links:
        if isinstance(link, str):
            link = ExtractedLink(url=link, transfers_authority=True)
        page_links.append(link)

    return CrawledPage(
        url=url,
        depth=depth,
        penalty=penalty,
        title=title,
        words=list(words.values()),
        word_count=word_count,
        head_count=head_count,
        links=page_links,
    )


def anchor(url, text="", transfers_authority=True):
    """ExtractedLink with stems of `text` (None when text is empty)."""
    stems = list(dict.fromkeys(stemmer.tokenize_and_stem(text))) if text else None
    return ExtractedLink(
        url=url, transfers_authority=transfers_authority, anchor_text=text, stems=stems
    )


def html_response(url, body, content_type="text/html", elapsed=0.1):
    return Response(
        url=url,
        status=200,
        headers={"Content-Type": content_type},
        body=body.encode("utf-8"),
        elapsed=elapsed,
    )


class FakeFetcher(Fetcher):
    """Serves pages from a dict; every URL not in it is a failed fetch."""

    def __init__(self, clock, pages=None, robots=None, dead_hosts=(), gate=None):
        super().__init__(timeout=1.0)
        self.clock = clock
        self.pages = pages or {}
        self.robots = robots or {}
        self.dead_hosts = set(dead_hosts)
        self.gate = gate
        self.fetched = []
        self.on_download = None

    async def download(self, url):
        parts = urlsplit(url)
        if parts.path == "/robots.txt":
            content = self.robots.get(parts.netloc)
            if content is None:
                return None
            return html_response(url, content, "text/plain")

        self.fetched.append((self.clock(), url))
        if self.on_download is not None:
            self.on_download(url)
        if self.gate is not None:
            await self.gate.wait()
        body = self.pages.get(url)
        if body is None:
            return None
        return html_response(url, body)

    async def resolve(self, host):
        return None if host in self.dead_hosts else "127.0.0.1"
