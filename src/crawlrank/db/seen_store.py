"""
Seen URL Store

Bloom filter over normalized URL keys. Answers "was this URL ever queued"
in memory sublinear in the number of URLs. False positives drop a URL
silently; false negatives never happen.
"""

import hashlib
import math

import numpy as np

from crawlrank.core.utils import url_key

DEFAULT_FALSE_POSITIVE_RATE = 1e-5
MAX_EXPECTED_URLS = 10_000_000


def expected_url_count(max_depth: int) -> int:
    """Rough upper bound of URLs a crawl of `max_depth` can discover."""
    return int(min(256 ** max(max_depth - 1, 0), MAX_EXPECTED_URLS))


def bloom_params(count: int, prob: float) -> tuple[int, int]:
    """Return (bits, hashes) for `count` items at false-positive rate `prob`."""
    count = max(count, 1)
    bits = math.ceil(-count * math.log(prob) / (math.log(2) ** 2))
    hashes = max(1, round(math.log(2) * bits / count))
    return bits, hashes


class BloomFilter:
    """Bit array with k hash positions per item (double hashing)."""

    def __init__(self, count: int, prob: float = DEFAULT_FALSE_POSITIVE_RATE):
        self.num_bits, self.num_hashes = bloom_params(count, prob)
        self._bits = np.zeros((self.num_bits + 7) // 8, dtype=np.uint8)
        self.count = 0

    def _positions(self, item: str) -> list[int]:
        digest = hashlib.blake2b(item.encode("utf-8"), digest_size=16).digest()
        h1 = int.from_bytes(digest[:8], "little")
        h2 = int.from_bytes(digest[8:], "little") | 1
        return [(h1 + i * h2) % self.num_bits for i in range(self.num_hashes)]

    def add(self, item: str) -> None:
        for pos in self._positions(item):
            self._bits[pos >> 3] |= np.uint8(1 << (pos & 7))
        self.count += 1

    def __contains__(self, item: str) -> bool:
        return all(
            self._bits[pos >> 3] & (1 << (pos & 7)) for pos in self._positions(item)
        )

    @property
    def size_bytes(self) -> int:
        return int(self._bits.nbytes)


class SeenStore:
    """Seen-URL set keyed by the case-insensitive normalized URL."""

    def __init__(self, max_depth: int, prob: float = DEFAULT_FALSE_POSITIVE_RATE):
        self._filter = BloomFilter(expected_url_count(max_depth), prob)

    def is_seen(self, url: str) -> bool:
        return url_key(url) in self._filter

    def mark_seen(self, url: str) -> None:
        self._filter.add(url_key(url))

    def stats(self) -> dict:
        return {
            "marked": self._filter.count,
            "bits": self._filter.num_bits,
            "hashes": self._filter.num_hashes,
            "bytes": self._filter.size_bytes,
        }
