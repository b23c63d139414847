"""Politeness-aware web crawler with a BM25 + PageRank search index."""

__version__ = "0.1.0"
