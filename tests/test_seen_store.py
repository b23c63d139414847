"""
Seen Store Tests

Tests for bloom filter sizing and the seen-URL set.
"""

from crawlrank.db.seen_store import (
    MAX_EXPECTED_URLS,
    BloomFilter,
    SeenStore,
    bloom_params,
    expected_url_count,
)


class TestSizing:
    def test_expected_url_count_grows_with_depth(self):
        assert expected_url_count(1) == 1
        assert expected_url_count(2) == 256
        assert expected_url_count(3) == 65536

    def test_expected_url_count_is_capped(self):
        assert expected_url_count(4) == MAX_EXPECTED_URLS
        assert expected_url_count(10) == MAX_EXPECTED_URLS

    def test_bloom_params(self):
        bits, hashes = bloom_params(1000, 0.01)
        assert bits == 9586
        assert hashes == 7

    def test_bloom_params_lower_rate_needs_more_bits(self):
        loose_bits, _ = bloom_params(1000, 0.01)
        strict_bits, strict_hashes = bloom_params(1000, 1e-5)
        assert strict_bits > loose_bits
        assert strict_hashes >= 1


class TestBloomFilter:
    def test_no_false_negatives(self):
        bloom = BloomFilter(1000, 1e-5)
        items = [f"http://example.com/page/{i}" for i in range(1000)]
        for item in items:
            bloom.add(item)
        assert all(item in bloom for item in items)
        assert bloom.count == 1000

    def test_rarely_false_positive(self):
        bloom = BloomFilter(10000, 1e-5)
        for i in range(1000):
            bloom.add(f"http://example.com/seen/{i}")
        false_positives = sum(
            1 for i in range(1000) if f"http://example.com/other/{i}" in bloom
        )
        assert false_positives < 5

    def test_size_matches_bits(self):
        bloom = BloomFilter(1000, 0.01)
        assert bloom.size_bytes == (bloom.num_bits + 7) // 8


class TestSeenStore:
    def test_mark_and_check(self):
        store = SeenStore(max_depth=2)
        assert store.is_seen("http://example.com/a") is False
        store.mark_seen("http://example.com/a")
        assert store.is_seen("http://example.com/a") is True

    def test_case_insensitive(self):
        store = SeenStore(max_depth=2)
        store.mark_seen("http://Example.com/Page")
        assert store.is_seen("http://example.com/page") is True

    def test_stats(self):
        store = SeenStore(max_depth=2)
        stats = store.stats()
        assert set(stats) == {"marked", "bits", "hashes", "bytes"}
        assert stats["bits"] == bloom_params(256, 1e-5)[0]
