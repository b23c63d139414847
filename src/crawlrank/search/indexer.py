"""
Index Builder

Persists one crawled page per transaction: its indexed row, one location
row per stem, word aggregates and the outbound link graph.
"""

import logging
import sqlite3
import threading
from typing import Protocol, Sequence

from cachetools import LRUCache

from crawlrank.core.utils import url_key
from crawlrank.db.search import IndexInfo, open_db, update_info

logger = logging.getLogger(__name__)

# Neutral rank of a freshly indexed page
DEFAULT_PAGERANK = 0.15

MAX_CACHED_PAGES = 100_000
SQL_BATCH_SIZE = 500


class IndexableWord(Protocol):
    stem: str
    position: int
    body_count: int
    head_count: int


class IndexableLink(Protocol):
    url: str
    transfers_authority: bool
    stems: list[str] | None


class IndexablePage(Protocol):
    url: str
    title: str
    words: Sequence[IndexableWord]
    word_count: int
    head_count: int
    links: Sequence[IndexableLink]


class IndexBuilder:
    """
    Single-writer index builder.

    `index` is synchronous and serialized by a lock, so it can be called from
    executor threads. Word and page ids are cached per session; ids created
    inside a transaction only reach the caches once it commits.
    """

    def __init__(
        self,
        db_path: str | None = None,
        conn: sqlite3.Connection | None = None,
        max_cached_pages: int = MAX_CACHED_PAGES,
    ):
        if conn is None:
            if db_path is None:
                raise ValueError("db_path or conn is required")
            conn = open_db(db_path, check_same_thread=False)
        self._conn = conn
        self._lock = threading.Lock()
        self._word_ids: dict[str, int] = {}
        self._page_ids: LRUCache[str, int] = LRUCache(maxsize=max_cached_pages)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def index(self, page: IndexablePage) -> list[IndexableLink]:
        """
        Index a crawled page.

        Returns:
            Outbound links whose target page is not indexed yet; the frontier
            dedups them. Empty if the page was already indexed (duplicates
            are a no-op).

        Raises:
            sqlite3.Error: Any store failure other than the duplicate page;
                the transaction is rolled back first.
        """
        with self._lock:
            new_words: dict[str, int] = {}
            new_pages: dict[str, int] = {}
            cur = self._conn.cursor()
            try:
                page_id, _ = self._take_page_id(cur, page.url, new_pages)
                try:
                    cur.execute(
                        "INSERT INTO indexed (pageid, title, numwords, numheads, pagerank) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (page_id, page.title, page.word_count, page.head_count, DEFAULT_PAGERANK),
                    )
                except sqlite3.IntegrityError:
                    self._conn.rollback()
                    logger.debug(f"Already indexed: {page.url}")
                    return []

                self._index_words(cur, page_id, page, new_words)
                discovered = self._index_links(cur, page_id, page, new_words, new_pages)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()

            self._word_ids.update(new_words)
            for key, pid in new_pages.items():
                self._page_ids[key] = pid

        logger.debug(
            f"Indexed {page.url}: {len(page.words)} stems, "
            f"{len(page.links)} links, {len(discovered)} unindexed"
        )
        return discovered

    def _index_words(
        self,
        cur: sqlite3.Cursor,
        page_id: int,
        page: IndexablePage,
        new_words: dict[str, int],
    ) -> None:
        locations = []
        word_updates = []
        for word in page.words:
            word_id = self._take_word_id(cur, word.stem, new_words)
            wordfreq = word.body_count / page.word_count if page.word_count else 0.0
            headfreq = word.head_count / page.head_count if page.head_count else 0.0
            locations.append((word_id, page_id, word.position, wordfreq, headfreq))
            word_updates.append((1 if word.head_count else 0, word_id))

        cur.executemany(
            "INSERT INTO location (wordid, pageid, position, wordfreq, headfreq) "
            "VALUES (?, ?, ?, ?, ?)",
            locations,
        )
        cur.executemany(
            "UPDATE word SET numpages = numpages + 1, numheads = numheads + ? "
            "WHERE wordid = ?",
            word_updates,
        )

    def _index_links(
        self,
        cur: sqlite3.Cursor,
        page_id: int,
        page: IndexablePage,
        new_words: dict[str, int],
        new_pages: dict[str, int],
    ) -> list[IndexableLink]:
        targets = []
        link_rows = []
        linkword_rows = []
        for link in page.links:
            to_id, _ = self._take_page_id(cur, link.url, new_pages)
            targets.append((to_id, link))
            if not link.transfers_authority:
                continue
            link_rows.append((page_id, to_id))
            for stem in link.stems or ():
                word_id = self._take_word_id(cur, stem, new_words)
                linkword_rows.append((page_id, to_id, word_id))

        cur.executemany("INSERT INTO link (fromid, toid) VALUES (?, ?)", link_rows)
        cur.executemany(
            "INSERT INTO linkword (fromid, toid, wordid) VALUES (?, ?, ?)",
            linkword_rows,
        )

        indexed = self._indexed_ids(cur, [to_id for to_id, _ in targets])
        return [link for to_id, link in targets if to_id not in indexed]

    def _indexed_ids(self, cur: sqlite3.Cursor, page_ids: list[int]) -> set[int]:
        found = set()
        for start in range(0, len(page_ids), SQL_BATCH_SIZE):
            batch = page_ids[start : start + SQL_BATCH_SIZE]
            placeholders = ",".join("?" * len(batch))
            rows = cur.execute(
                f"SELECT pageid FROM indexed WHERE pageid IN ({placeholders})", batch
            ).fetchall()
            found.update(row[0] for row in rows)
        return found

    def _take_word_id(
        self, cur: sqlite3.Cursor, stem: str, new_words: dict[str, int]
    ) -> int:
        word_id = self._word_ids.get(stem) or new_words.get(stem)
        if word_id is not None:
            return word_id

        row = cur.execute("SELECT wordid FROM word WHERE stem = ?", (stem,)).fetchone()
        if row:
            word_id = row[0]
            self._word_ids[stem] = word_id
            return word_id

        cur.execute("INSERT INTO word (stem) VALUES (?)", (stem,))
        new_words[stem] = cur.lastrowid
        return cur.lastrowid

    def _take_page_id(
        self, cur: sqlite3.Cursor, url: str, new_pages: dict[str, int]
    ) -> tuple[int, bool]:
        """Return (pageid, created)."""
        key = url_key(url)
        page_id = self._page_ids.get(key) or new_pages.get(key)
        if page_id is not None:
            return page_id, False

        row = cur.execute("SELECT pageid FROM page WHERE url = ?", (url,)).fetchone()
        if row:
            self._page_ids[key] = row[0]
            return row[0], False

        cur.execute("INSERT INTO page (url) VALUES (?)", (url,))
        new_pages[key] = cur.lastrowid
        return cur.lastrowid, True

    def update_info(self) -> IndexInfo:
        """Recompute the info aggregate used by BM25 length normalization."""
        with self._lock:
            try:
                info = update_info(self._conn)
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return info
