# Prometheus Metrics for the crawl session
# Exposed with `crawlrank crawl --metrics-port N`

from prometheus_client import Counter, Gauge, start_http_server

PAGES_DOWNLOADED = Counter(
    "crawl_pages_downloaded_total", "Pages requested from remote hosts"
)

PAGES_INDEXED = Counter("crawl_pages_indexed_total", "Pages written to the index")

FETCH_FAILURES = Counter(
    "crawl_fetch_failures_total",
    "Fetches that produced no page",
    ["reason"],  # network, status, oversize, content_type, language
)

ROBOTS_BLOCKED = Counter(
    "crawl_robots_blocked_total", "Queued pages discarded by robots.txt rules"
)

DOMAINS_DROPPED = Counter(
    "crawl_domains_dropped_total", "Domains dropped after a DNS failure"
)

WORKERS_IN_FLIGHT = Gauge("crawl_workers_in_flight", "Workers currently running")


def serve_metrics(port: int) -> None:
    """Start the Prometheus exporter in a background thread."""
    start_http_server(port)
