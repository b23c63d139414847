"""
Search Engine Tests

Tests for conjunctive retrieval, ranking and pagination over a small index.
"""

import pytest

from crawlrank.pagerank import calculate_pagerank
from crawlrank.search.indexer import IndexBuilder
from crawlrank.search.scoring import RankingConfig
from crawlrank.search.searcher import SearchEngine

from conftest import anchor, make_page


def _index(db_path, pages, update_info=True):
    builder = IndexBuilder(db_path)
    try:
        for page in pages:
            builder.index(page)
        if update_info:
            builder.update_info()
    finally:
        builder.close()


@pytest.fixture
def corpus(test_db_path):
    _index(
        test_db_path,
        [
            make_page(
                "http://example.com/python",
                title="Python Tutorial",
                body="python basics and python examples",
            ),
            make_page("http://example.com/snakes", title="Snakes", body="python snakes"),
            make_page("http://example.com/java", title="Java", body="java tutorial"),
        ],
    )
    return test_db_path


class TestRetrieval:
    def test_single_word(self, corpus):
        result = SearchEngine(corpus).search("python")
        assert result.total == 2
        assert {hit.url for hit in result.hits} == {
            "http://example.com/python",
            "http://example.com/snakes",
        }

    def test_all_words_required(self, corpus):
        result = SearchEngine(corpus).search("python tutorial")
        assert result.total == 1
        assert [hit.url for hit in result.hits] == ["http://example.com/python"]
        assert result.hits[0].title == "Python Tutorial"

    def test_unknown_words_dropped(self, corpus):
        result = SearchEngine(corpus).search("python xylophonist")
        assert result.total == 2

    def test_only_unknown_words(self, corpus):
        result = SearchEngine(corpus).search("xylophonist")
        assert result.total == 0
        assert result.hits == []

    @pytest.mark.parametrize("query", ["", "   ", "the and of", "!!!"])
    def test_no_stems(self, corpus, query):
        result = SearchEngine(corpus).search(query)
        assert result.total == 0
        assert result.hits == []
        assert result.query == query

    def test_repeated_query_words(self, corpus):
        assert SearchEngine(corpus).search("python python").total == 2

    def test_empty_index(self, test_db_path):
        result = SearchEngine(test_db_path).search("python")
        assert result.total == 0

    def test_info_missing_is_derived(self, test_db_path):
        _index(
            test_db_path,
            [make_page("http://example.com/a", body="python")],
            update_info=False,
        )
        result = SearchEngine(test_db_path).search("python")
        assert result.total == 1


class TestRanking:
    def test_scores_sorted_and_bounded(self, corpus):
        hits = SearchEngine(corpus).search("python").hits
        scores = [hit.score for hit in hits]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    def test_anchor_text_authority(self, test_db_path):
        # b and c are identical; only b is linked with relevant anchor text
        _index(
            test_db_path,
            [
                make_page(
                    "http://hub.com",
                    body="homepage",
                    links=[
                        anchor("http://example.com/c", "click here"),
                        anchor("http://example.com/b", "widget"),
                    ],
                ),
                make_page("http://example.com/c", body="widget reviews"),
                make_page("http://example.com/b", body="widget reviews"),
            ],
        )

        hits = SearchEngine(test_db_path).search("widget").hits

        assert [hit.url for hit in hits] == [
            "http://example.com/b",
            "http://example.com/c",
        ]
        assert hits[0].score > hits[1].score

    def test_own_pagerank(self, test_db_path):
        _index(
            test_db_path,
            [
                make_page("http://a.com", body="gadget", links=["http://b.com"]),
                make_page("http://b.com", body="gadget", links=["http://a.com", "http://c.com"]),
                make_page("http://c.com", body="gadget", links=["http://b.com"]),
            ],
        )
        calculate_pagerank(test_db_path, iterations=20)
        config = RankingConfig(
            head_bm25_weight=0,
            body_bm25_weight=0,
            referent_pagerank_weight=0,
            word_count_weight=0,
            position_weight=0,
            pagerank_weight=1,
        )

        hits = SearchEngine(test_db_path, config).search("gadget").hits

        assert hits[0].url == "http://b.com"
        assert hits[0].score == pytest.approx(1.0)


class TestPagination:
    def test_pages_do_not_overlap(self, corpus):
        engine = SearchEngine(corpus)
        first = engine.search("python", limit=1, offset=0)
        second = engine.search("python", limit=1, offset=1)

        assert first.total == second.total == 2
        assert len(first.hits) == len(second.hits) == 1
        assert first.hits[0].url != second.hits[0].url

    def test_offset_past_end(self, corpus):
        result = SearchEngine(corpus).search("python", limit=10, offset=5)
        assert result.total == 2
        assert result.hits == []

    def test_negative_offset_starts_at_first_hit(self, corpus):
        engine = SearchEngine(corpus)
        first = engine.search("python", limit=1, offset=0)
        clamped = engine.search("python", limit=1, offset=-1)
        assert [hit.url for hit in clamped.hits] == [hit.url for hit in first.hits]

    def test_negative_limit_returns_no_hits(self, corpus):
        result = SearchEngine(corpus).search("python", limit=-1)
        assert result.total == 2
        assert result.hits == []

    def test_limit(self, corpus):
        result = SearchEngine(corpus).search("python", limit=1)
        assert len(result.hits) == 1
        assert result.elapsed >= 0
