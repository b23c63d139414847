"""
Command line interface.

Usage:
    crawlrank crawl URL... [--db PATH] [--max-depth N] [--max-pages N] ...
    crawlrank pagerank [--db PATH] [--iterations N]
    crawlrank search QUERY... [--db PATH] [--limit N] [--offset N]
    crawlrank server [--db PATH] [--host H] [--port N]
"""

import argparse
import asyncio
import logging
import signal
import sqlite3
import sys
import time

from crawlrank.core.config import settings, validate_settings

logger = logging.getLogger(__name__)


def _spent(started: float) -> str:
    minutes = round((time.monotonic() - started) / 60)
    return f"{minutes // 60}:{minutes % 60:02d}"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crawlrank", description="Crawl the web and search what was found"
    )
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL, help="Logging level"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_db(p: argparse.ArgumentParser) -> None:
        p.add_argument("--db", default=settings.DB_PATH, help="Path to index database")

    crawl = sub.add_parser("crawl", help="Crawl from seed URLs and build the index")
    crawl.add_argument("urls", nargs="*", default=settings.CRAWL_SEEDS, help="Seed URLs")
    add_db(crawl)
    crawl.add_argument("--max-depth", type=int, default=settings.CRAWL_MAX_DEPTH)
    crawl.add_argument(
        "--loose",
        action="store_true",
        default=settings.CRAWL_LOOSE,
        help="Only require an http(s) scheme from candidate URLs",
    )
    crawl.add_argument(
        "--relax-time",
        type=float,
        default=settings.CRAWL_RELAX_TIME_MIN,
        help="Minutes an exhausted domain is kept before eviction",
    )
    crawl.add_argument(
        "--timeout",
        type=float,
        default=settings.CRAWL_TIMEOUT_SEC,
        help="Request timeout in seconds",
    )
    crawl.add_argument(
        "--high-water-mark", type=int, default=settings.CRAWL_HIGH_WATER_MARK
    )
    crawl.add_argument(
        "--max-bytes", type=int, default=settings.CRAWL_MAX_RESPONSE_BYTES
    )
    crawl.add_argument(
        "--ignore-nofollow", action="store_true", default=settings.CRAWL_IGNORE_NOFOLLOW
    )
    crawl.add_argument(
        "--link-stem-limit", type=int, default=settings.CRAWL_LINK_STEM_LIMIT
    )
    crawl.add_argument("--max-pages", type=int, default=None)
    crawl.add_argument(
        "--metrics-port", type=int, default=None, help="Expose Prometheus metrics"
    )

    pagerank = sub.add_parser("pagerank", help="Compute PageRank of indexed pages")
    add_db(pagerank)
    pagerank.add_argument("--iterations", type=int, default=settings.PAGERANK_ITERATIONS)

    search = sub.add_parser("search", help="Query the index")
    search.add_argument("query", nargs="+")
    add_db(search)
    search.add_argument("--limit", type=int, default=settings.RESULTS_LIMIT)
    search.add_argument("--offset", type=int, default=0)

    server = sub.add_parser("server", help="Serve the search API")
    add_db(server)
    server.add_argument("--host", default=settings.HOST)
    server.add_argument("--port", type=int, default=settings.PORT)
    server.add_argument("--limit", type=int, default=settings.RESULTS_LIMIT)

    return parser


def cmd_crawl(args: argparse.Namespace) -> int:
    from crawlrank.crawler.metrics import serve_metrics
    from crawlrank.crawler.session import CrawlOptions, CrawlSession

    if not args.urls:
        print("No seed URLs given (pass URLs or set CRAWL_SEEDS)", file=sys.stderr)
        return 1
    for name in ("max_depth", "high_water_mark", "max_bytes", "link_stem_limit"):
        if getattr(args, name) <= 0:
            raise RuntimeError(f"--{name.replace('_', '-')} must be positive")

    if args.metrics_port:
        serve_metrics(args.metrics_port)

    options = CrawlOptions(
        max_depth=args.max_depth,
        loose=args.loose,
        relax_time=args.relax_time,
        timeout=args.timeout,
        dns_timeout=settings.CRAWL_DNS_TIMEOUT_SEC,
        high_water_mark=args.high_water_mark,
        max_bytes=args.max_bytes,
        ignore_nofollow=args.ignore_nofollow,
        link_stem_limit=args.link_stem_limit,
        languages=settings.CRAWL_LANGUAGES,
        info_interval=settings.CRAWL_INFO_INTERVAL,
    )
    started = time.monotonic()
    session: CrawlSession

    def on_indexed(url: str) -> None:
        print(
            f"D: {session.downloaded}   I: {session.indexed}   "
            f"S: {_spent(started)}   [I] {url}",
            flush=True,
        )

    session = CrawlSession(args.db, args.urls, options, on_indexed=on_indexed)

    async def main() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, session.shutdown)
        await session.run(max_pages=args.max_pages)

    asyncio.run(main())

    print("-" * 60)
    print(f"Downloaded: {session.downloaded}")
    print(f"Indexed: {session.indexed}")
    print(f"Spent: {_spent(started)}")
    return 0


def cmd_pagerank(args: argparse.Namespace) -> int:
    from crawlrank.pagerank import calculate_pagerank

    count = calculate_pagerank(args.db, args.iterations, on_state=print)
    print(f"Scored {count} pages.")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    from crawlrank.search.searcher import SearchEngine

    engine = SearchEngine(args.db)
    result = engine.search(" ".join(args.query), limit=args.limit, offset=args.offset)

    print("-" * 60)
    if not result.hits:
        print("Nothing found.")
    for hit in result.hits:
        print(f"[{hit.score:.2f}] {hit.url}")
    print("-" * 60)
    print(f"About {result.total} results ({result.elapsed:.3f} seconds)")
    return 0


def cmd_server(args: argparse.Namespace) -> int:
    from crawlrank.api.main import run

    run(args.db, args.host, args.port, args.limit)
    return 0


COMMANDS = {
    "crawl": cmd_crawl,
    "pagerank": cmd_pagerank,
    "search": cmd_search,
    "server": cmd_server,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        validate_settings(settings)
        return COMMANDS[args.command](args)
    except (RuntimeError, sqlite3.Error) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
