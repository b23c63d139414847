"""
Search Index Database

Schema definitions and connection helpers for the persisted index.
Written by the crawl session (IndexBuilder), read by PageRank and search.
"""

import logging
import os
import sqlite3
from typing import NamedTuple

from crawlrank.core.config import settings

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS page (
  pageid INTEGER PRIMARY KEY,
  url TEXT NOT NULL UNIQUE COLLATE NOCASE
);

CREATE TABLE IF NOT EXISTS word (
  wordid INTEGER PRIMARY KEY,
  stem TEXT NOT NULL UNIQUE,
  numpages INTEGER NOT NULL DEFAULT 0,
  numheads INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS indexed (
  pageid INTEGER PRIMARY KEY REFERENCES page(pageid),
  title TEXT,
  numwords INTEGER NOT NULL,
  numheads INTEGER NOT NULL,
  pagerank REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS location (
  wordid INTEGER NOT NULL,
  pageid INTEGER NOT NULL,
  position INTEGER NOT NULL,
  wordfreq REAL NOT NULL,
  headfreq REAL NOT NULL,
  PRIMARY KEY (wordid, pageid)
) WITHOUT ROWID;
CREATE INDEX IF NOT EXISTS idx_location_pageid ON location(pageid);

CREATE TABLE IF NOT EXISTS link (
  fromid INTEGER NOT NULL REFERENCES indexed(pageid),
  toid INTEGER NOT NULL REFERENCES page(pageid)
);
CREATE INDEX IF NOT EXISTS idx_link_toid ON link(toid);

CREATE TABLE IF NOT EXISTS linkword (
  fromid INTEGER NOT NULL,
  toid INTEGER NOT NULL,
  wordid INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_linkword_toid_wordid ON linkword(toid, wordid);

CREATE TABLE IF NOT EXISTS info (
  numindexed INTEGER NOT NULL,
  avgnumwords REAL NOT NULL,
  avgnumheads REAL NOT NULL
);
"""


class IndexInfo(NamedTuple):
    numindexed: int
    avgnumwords: float
    avgnumheads: float


def get_connection(db_path: str | None = None, **kwargs) -> sqlite3.Connection:
    """Get a SQLite connection to the index.

    Args:
        db_path: Path to the database file. Defaults to CRAWLRANK_DB.
        **kwargs: Passed through to sqlite3.connect (e.g. check_same_thread).
    """
    path = db_path or settings.DB_PATH
    return sqlite3.connect(path, **kwargs)


def open_db(path: str = settings.DB_PATH, **kwargs) -> sqlite3.Connection:
    """Open database connection and ensure schema exists."""
    db_dir = os.path.dirname(path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    con = get_connection(path, **kwargs)
    con.executescript(SCHEMA_SQL)
    return con


def ensure_db(path: str = settings.DB_PATH) -> None:
    """Ensure database file exists with correct schema."""
    con = open_db(path)
    con.close()


def read_info(con: sqlite3.Connection) -> IndexInfo:
    """Read the aggregate info row (zeros when nothing was indexed yet)."""
    row = con.execute(
        "SELECT numindexed, avgnumwords, avgnumheads FROM info LIMIT 1"
    ).fetchone()
    if row is None:
        return IndexInfo(0, 0.0, 0.0)
    return IndexInfo(int(row[0]), float(row[1]), float(row[2]))


def update_info(con: sqlite3.Connection) -> IndexInfo:
    """Recompute the info row from the indexed table. Caller commits."""
    row = con.execute(
        "SELECT COUNT(*), AVG(numwords), AVG(numheads) FROM indexed"
    ).fetchone()
    info = IndexInfo(int(row[0]), float(row[1] or 0.0), float(row[2] or 0.0))
    con.execute("DELETE FROM info")
    con.execute(
        "INSERT INTO info (numindexed, avgnumwords, avgnumheads) VALUES (?, ?, ?)",
        info,
    )
    logger.debug(
        f"Info updated: {info.numindexed} indexed, "
        f"avg words {info.avgnumwords:.1f}, avg heads {info.avgnumheads:.1f}"
    )
    return info
