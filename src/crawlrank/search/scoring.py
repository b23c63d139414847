"""
Ranking Signals

BM25 over stored word frequencies, IQR-based normalization of raw signals
and the weighted combination into one score in [0, 1].
"""

import math
from dataclasses import dataclass

import numpy as np

# Signal names in combination order
HEAD_BM25 = "head_bm25"
BODY_BM25 = "body_bm25"
REFERENT_PAGERANK = "referent_pagerank"
WORD_COUNT = "word_count"
POSITION = "position"
PAGERANK = "pagerank"

# Lower raw values are better
INVERTED_SIGNALS = frozenset({POSITION})


@dataclass
class RankingConfig:
    """BM25 hyperparameters and signal weights."""

    k1: float = 1.5  # Term frequency saturation
    b: float = 0.75  # Length normalization
    head_bm25_weight: float = 0.30
    body_bm25_weight: float = 0.25
    referent_pagerank_weight: float = 0.15
    word_count_weight: float = 0.12
    position_weight: float = 0.10
    pagerank_weight: float = 0.08

    def weights(self) -> dict[str, float]:
        return {
            HEAD_BM25: self.head_bm25_weight,
            BODY_BM25: self.body_bm25_weight,
            REFERENT_PAGERANK: self.referent_pagerank_weight,
            WORD_COUNT: self.word_count_weight,
            POSITION: self.position_weight,
            PAGERANK: self.pagerank_weight,
        }


def idf(total: int, df: int) -> float:
    """max(0, ln((N - df) / df)); 0 for unknown or ubiquitous words."""
    if df <= 0 or df >= total:
        return 0.0
    return max(0.0, math.log((total - df) / df))


def bm25(
    freqs: list[float],
    idfs: list[float],
    length: float,
    avg_length: float,
    k1: float,
    b: float,
) -> float:
    """
    BM25 of one document for the query terms.

    score = Σ IDF(t) * (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * |d| / avgdl))

    `freqs` are stored relative frequencies (occurrences / length), so
    tf = freq * length.
    """
    if length <= 0:
        return 0.0
    ratio = length / avg_length if avg_length > 0 else 1.0
    length_norm = 1 - b + b * ratio

    score = 0.0
    for freq, weight in zip(freqs, idfs):
        tf = freq * length
        if tf <= 0:
            continue
        score += weight * (tf * (k1 + 1)) / (tf + k1 * length_norm)
    return score


def iqr_bounds(values: np.ndarray) -> tuple[float, float]:
    """(Q1 - 1.5 IQR, Q3 + 1.5 IQR) clamped to the observed range."""
    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1
    lo = max(q1 - 1.5 * iqr, float(values.min()))
    hi = min(q3 + 1.5 * iqr, float(values.max()))
    return float(lo), float(hi)


def normalize(values: np.ndarray, invert: bool = False) -> np.ndarray:
    """Scale `values` into [0, 1] within their IQR fences.

    A signal every candidate shares scores 1.0 for all of them.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0:
        return values

    lo, hi = iqr_bounds(values)
    if hi <= lo:
        # Quartiles collapsed onto outliers; fall back to the full range
        lo, hi = float(values.min()), float(values.max())
    if hi <= lo:
        return np.ones_like(values)

    scaled = np.clip((values - lo) / (hi - lo), 0.0, 1.0)
    return 1.0 - scaled if invert else scaled


def combine(signals: dict[str, np.ndarray], config: RankingConfig) -> np.ndarray:
    """Weighted mean of the normalized signals."""
    weights = config.weights()
    total_weight = sum(weights.values())
    size = len(next(iter(signals.values())))
    scores = np.zeros(size, dtype=np.float64)
    for name, weight in weights.items():
        scores += weight * normalize(signals[name], invert=name in INVERTED_SIGNALS)
    return scores / total_weight if total_weight > 0 else scores
