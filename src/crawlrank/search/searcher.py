"""
Search Engine

Conjunctive (AND) free-text search over the index. Candidates are scored
by six signals (heading and body BM25, referent PageRank, word count,
query term position and own PageRank), each IQR-normalized across the
candidate set and combined with fixed weights.
"""

import logging
import sqlite3
import time
from dataclasses import dataclass, field

import numpy as np

from crawlrank.analyzer import stemmer
from crawlrank.db.search import IndexInfo, get_connection, read_info
from crawlrank.search import scoring
from crawlrank.search.scoring import RankingConfig

logger = logging.getLogger(__name__)


@dataclass
class SearchHit:
    """A single search result."""

    url: str
    title: str
    score: float


@dataclass
class SearchResult:
    """Search results with metadata."""

    query: str
    total: int
    hits: list[SearchHit] = field(default_factory=list)
    elapsed: float = 0.0


@dataclass
class _Word:
    wordid: int
    numpages: int
    numheads: int


@dataclass
class _Candidate:
    pageid: int
    numwords: int
    numheads: int
    pagerank: float
    wordfreqs: dict[int, float] = field(default_factory=dict)
    headfreqs: dict[int, float] = field(default_factory=dict)
    position_sum: int = 0


def _placeholders(count: int) -> str:
    if count <= 0:
        raise ValueError("count must be greater than zero")
    return ",".join(["?"] * count)


class SearchEngine:
    def __init__(self, db_path: str, config: RankingConfig | None = None):
        self.db_path = db_path
        self.config = config or RankingConfig()

    def search(self, query: str, limit: int = 10, offset: int = 0) -> SearchResult:
        """
        Search pages containing every query stem.

        Args:
            query: Free-text query
            limit: Maximum number of hits returned
            offset: Number of ranked hits to skip; negative counts as 0

        Returns:
            SearchResult; empty (never an error) when nothing matches
        """
        started = time.perf_counter()
        offset = max(offset, 0)
        limit = max(limit, 0)
        stems = self._tokenize(query)
        if not stems:
            return self._empty_result(query, started)

        conn = get_connection(self.db_path)
        try:
            words = self._resolve_words(conn, stems)
            if not words:
                return self._empty_result(query, started)

            candidates = self._find_candidates(conn, words)
            if not candidates:
                return self._empty_result(query, started)

            info = self._load_info(conn)
            referent = self._referent_pagerank(conn, words)
            scores = self._score_candidates(candidates, words, info, referent)

            order = np.argsort(-scores, kind="stable")
            total = len(candidates)
            window = [
                (candidates[i].pageid, float(scores[i]))
                for i in order[offset : offset + limit]
            ]
            hits = self._fetch_hits(conn, window)

            return SearchResult(
                query=query,
                total=total,
                hits=hits,
                elapsed=time.perf_counter() - started,
            )

        finally:
            conn.close()

    def _tokenize(self, text: str) -> list[str]:
        """Distinct query stems in query order."""
        if not text or not text.strip():
            return []
        return list(dict.fromkeys(stemmer.tokenize_and_stem(text)))

    def _empty_result(self, query: str, started: float) -> SearchResult:
        return SearchResult(
            query=query, total=0, hits=[], elapsed=time.perf_counter() - started
        )

    def _resolve_words(self, conn: sqlite3.Connection, stems: list[str]) -> list[_Word]:
        rows = conn.execute(
            f"SELECT wordid, numpages, numheads FROM word "
            f"WHERE stem IN ({_placeholders(len(stems))})",
            stems,
        ).fetchall()
        if len(rows) < len(stems):
            logger.debug(f"Dropped {len(stems) - len(rows)} unknown query stems")
        return [_Word(*row) for row in rows]

    def _load_info(self, conn: sqlite3.Connection) -> IndexInfo:
        info = read_info(conn)
        if info.numindexed > 0:
            return info
        # Info not computed yet; derive it on the fly
        row = conn.execute(
            "SELECT COUNT(*), AVG(numwords), AVG(numheads) FROM indexed"
        ).fetchone()
        return IndexInfo(int(row[0]), float(row[1] or 0.0), float(row[2] or 0.0))

    def _find_candidates(
        self, conn: sqlite3.Connection, words: list[_Word]
    ) -> list[_Candidate]:
        """Pages with a location row for every word (AND logic)."""
        ids = [w.wordid for w in words]
        ph = _placeholders(len(ids))
        rows = conn.execute(
            f"""
            SELECT l.pageid, l.wordid, l.position, l.wordfreq, l.headfreq,
                   i.numwords, i.numheads, i.pagerank
            FROM location l
            JOIN indexed i ON i.pageid = l.pageid
            WHERE l.wordid IN ({ph})
              AND l.pageid IN (
                SELECT pageid FROM location
                WHERE wordid IN ({ph})
                GROUP BY pageid
                HAVING COUNT(*) = ?
              )
            ORDER BY l.pageid
            """,
            [*ids, *ids, len(ids)],
        )

        candidates: dict[int, _Candidate] = {}
        for pageid, wordid, position, wordfreq, headfreq, numwords, numheads, pr in rows:
            candidate = candidates.get(pageid)
            if candidate is None:
                candidate = _Candidate(pageid, numwords, numheads, pr)
                candidates[pageid] = candidate
            candidate.wordfreqs[wordid] = wordfreq
            candidate.headfreqs[wordid] = headfreq
            candidate.position_sum += position
        return list(candidates.values())

    def _referent_pagerank(
        self, conn: sqlite3.Connection, words: list[_Word]
    ) -> dict[int, float]:
        """Summed PageRank of indexed pages linking with a query stem in the anchor."""
        ids = [w.wordid for w in words]
        rows = conn.execute(
            f"""
            SELECT lw.toid, SUM(i.pagerank)
            FROM (
              SELECT DISTINCT fromid, toid FROM linkword
              WHERE wordid IN ({_placeholders(len(ids))})
            ) lw
            JOIN indexed i ON i.pageid = lw.fromid
            GROUP BY lw.toid
            """,
            ids,
        )
        return {toid: float(total) for toid, total in rows}

    def _score_candidates(
        self,
        candidates: list[_Candidate],
        words: list[_Word],
        info: IndexInfo,
        referent: dict[int, float],
    ) -> np.ndarray:
        cfg = self.config
        body_idfs = [scoring.idf(info.numindexed, w.numpages) for w in words]
        head_idfs = [scoring.idf(info.numindexed, w.numheads) for w in words]

        signals = {
            scoring.BODY_BM25: np.array(
                [
                    scoring.bm25(
                        [c.wordfreqs[w.wordid] for w in words],
                        body_idfs,
                        c.numwords,
                        info.avgnumwords,
                        cfg.k1,
                        cfg.b,
                    )
                    for c in candidates
                ]
            ),
            scoring.HEAD_BM25: np.array(
                [
                    scoring.bm25(
                        [c.headfreqs[w.wordid] for w in words],
                        head_idfs,
                        c.numheads,
                        info.avgnumheads,
                        cfg.k1,
                        cfg.b,
                    )
                    for c in candidates
                ]
            ),
            scoring.REFERENT_PAGERANK: np.array(
                [referent.get(c.pageid, 0.0) for c in candidates]
            ),
            scoring.WORD_COUNT: np.array([float(c.numwords) for c in candidates]),
            scoring.POSITION: np.array([float(c.position_sum) for c in candidates]),
            scoring.PAGERANK: np.array([c.pagerank for c in candidates]),
        }
        return scoring.combine(signals, cfg)

    def _fetch_hits(
        self, conn: sqlite3.Connection, window: list[tuple[int, float]]
    ) -> list[SearchHit]:
        """Attach url and title for the returned window only."""
        if not window:
            return []
        ids = [pageid for pageid, _ in window]
        rows = conn.execute(
            f"""
            SELECT p.pageid, p.url, i.title
            FROM page p JOIN indexed i ON i.pageid = p.pageid
            WHERE p.pageid IN ({_placeholders(len(ids))})
            """,
            ids,
        )
        details = {pageid: (url, title or "") for pageid, url, title in rows}
        return [
            SearchHit(url=details[pageid][0], title=details[pageid][1], score=score)
            for pageid, score in window
            if pageid in details
        ]
