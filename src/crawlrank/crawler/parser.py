"""
HTML Content Extraction

Turns a fetched HTML body into per-stem statistics (body and headings
separately) and outbound links with anchor stems and link penalties.
"""

import warnings
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning
from bs4.element import NavigableString, PreformattedString

from crawlrank.analyzer import stemmer
from crawlrank.core.utils import normalize_url, url_key

warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
SKIPPED_TAGS = ["script", "style", "noscript", "template"]

# Link penalties
NO_AUTHORITY_PENALTY = 8
NO_STEMS_PENALTY = 8
EMPTY_STEMS_PENALTY = 4

UrlFilter = Callable[[str], bool]


@dataclass
class WordStat:
    stem: str
    position: int  # 1-based index of the first occurrence
    body_count: int = 0
    head_count: int = 0


@dataclass
class ExtractedLink:
    url: str
    transfers_authority: bool
    anchor_text: str = ""
    # None: no anchor text captured, []: anchor text stemmed to nothing
    stems: list[str] | None = None
    penalty: int = 0


@dataclass
class ExtractedPage:
    title: str
    words: list[WordStat] = field(default_factory=list)
    word_count: int = 0
    head_count: int = 0
    links: list[ExtractedLink] = field(default_factory=list)


def _strip_nul(text: str) -> str:
    return text.replace("\x00", " ")


class _WordCollector:
    def __init__(self):
        self.words: dict[str, WordStat] = {}
        self.word_count = 0
        self.head_count = 0

    def add_text(self, text: str, is_heading: bool) -> None:
        for stem in stemmer.tokenize_and_stem(text):
            self.word_count += 1
            if is_heading:
                self.head_count += 1
            stat = self.words.get(stem)
            if stat is None:
                stat = WordStat(stem=stem, position=self.word_count)
                self.words[stem] = stat
            stat.body_count += 1
            if is_heading:
                stat.head_count += 1


def link_penalty(link: ExtractedLink) -> int:
    penalty = 0
    if not link.transfers_authority:
        penalty += NO_AUTHORITY_PENALTY
    if link.stems is None:
        penalty += NO_STEMS_PENALTY
    elif not link.stems:
        penalty += EMPTY_STEMS_PENALTY
    return penalty


def _is_nofollow(tag) -> bool:
    rel = tag.get("rel")
    if not rel:
        return False
    if isinstance(rel, str):
        rel = rel.split()
    return any(r.lower() == "nofollow" for r in rel)


def _collect_links(
    soup: BeautifulSoup,
    base_url: str,
    url_filter: UrlFilter | None,
    ignore_nofollow: bool,
    link_stem_limit: int,
) -> list[ExtractedLink]:
    page_key = url_key(normalize_url("", base_url) or base_url)
    links: dict[str, ExtractedLink] = {}

    for a in soup.find_all("a"):
        href = a.get("href")
        if isinstance(href, list):
            href = href[0] if href else None
        if not href:
            continue

        url = normalize_url(base_url, href)
        if url is None or url_key(url) == page_key:
            continue
        if url_filter is not None and not url_filter(url):
            continue

        # Dynamic pages and nofollow anchors get no authority
        dynamic = bool(urlsplit(urljoin(base_url, href.strip())).query)
        transfers = not dynamic and (ignore_nofollow or not _is_nofollow(a))
        text = _strip_nul(a.get_text(" ", strip=True))

        key = url_key(url)
        link = links.get(key)
        if link is None:
            link = ExtractedLink(url=url, transfers_authority=transfers)
            links[key] = link
        elif transfers:
            link.transfers_authority = True

        if transfers and text:
            if not link.anchor_text:
                link.anchor_text = text
            stems = link.stems if link.stems is not None else []
            link.stems = stems
            for stem in stemmer.tokenize_and_stem(text):
                if len(stems) >= link_stem_limit:
                    break
                if stem not in stems:
                    stems.append(stem)

    result = list(links.values())
    for link in result:
        link.penalty = link_penalty(link)
    return result


def extract(
    body: str,
    base_url: str,
    url_filter: UrlFilter | None = None,
    ignore_nofollow: bool = False,
    link_stem_limit: int = 10,
) -> ExtractedPage:
    """
    Extract title, word statistics and links from an HTML body.

    Args:
        body: Decoded HTML
        base_url: URL the body was fetched from (resolves relative links)
        url_filter: Predicate on normalized link URLs; rejected links are dropped
        ignore_nofollow: Treat rel=nofollow anchors as transferring authority
        link_stem_limit: Maximum distinct anchor stems kept per link

    Returns:
        ExtractedPage; the title counts as heading text
    """
    soup = BeautifulSoup(_strip_nul(body), "html.parser")

    title = ""
    if soup.title and soup.title.string:
        title = _strip_nul(soup.title.string).strip()

    for tag in soup(SKIPPED_TAGS):
        tag.decompose()

    links = _collect_links(soup, base_url, url_filter, ignore_nofollow, link_stem_limit)

    collector = _WordCollector()
    collector.add_text(title, is_heading=True)
    for node in soup.find_all(string=True):
        if isinstance(node, PreformattedString) or not isinstance(node, NavigableString):
            continue
        if node.find_parent("title") is not None:
            continue
        is_heading = node.find_parent(HEADING_TAGS) is not None
        collector.add_text(str(node), is_heading)

    return ExtractedPage(
        title=title,
        words=list(collector.words.values()),
        word_count=collector.word_count,
        head_count=collector.head_count,
        links=links,
    )
