"""
Page Fetcher

Single GET per page with a fixed browser-like header set, a total timeout
and a response size cap. Every failure resolves to None.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import urlsplit

import aiohttp

from crawlrank.crawler.metrics import FETCH_FAILURES, PAGES_DOWNLOADED

logger = logging.getLogger(__name__)

# Maximum response size (10 MB)
MAX_RESPONSE_SIZE = 10 * 1024 * 1024

CHUNK_SIZE = 64 * 1024

BROWSER_HEADERS = {
    "Accept": "application/xml,application/xhtml+xml,text/html;q=0.9,text/plain;q=0.8",
    "Accept-Language": "ru, en;q=0.8",
    "Accept-Charset": "utf-8",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; U; Intel Mac OS X 10_6_4; en-US) "
        "AppleWebKit/534.7 (KHTML, like Gecko) Chrome/7.0.517.41 Safari/534.7"
    ),
}


@dataclass
class Response:
    url: str
    status: int
    headers: Mapping[str, str]
    body: bytes
    elapsed: float
    encoding: str = "utf-8"

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class Fetcher:
    """aiohttp-backed fetcher; use as an async context manager."""

    def __init__(
        self,
        timeout: float = 15.0,
        max_bytes: int = MAX_RESPONSE_SIZE,
        languages: list[str] | None = None,
        dns_timeout: float = 5.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.languages = languages or ["en", "ru"]
        self.dns_timeout = dns_timeout
        self._session = session
        self._owns_session = session is None
        self._language_re = re.compile(
            "|".join(re.escape(lang) for lang in self.languages), re.I
        )

    async def __aenter__(self) -> "Fetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=BROWSER_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                auto_decompress=True,
            )
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def download(self, url: str) -> Response | None:
        """GET `url`; None on network error, timeout, non-2xx or oversize."""
        if self._session is None:
            raise RuntimeError("Fetcher is not open")

        started = time.monotonic()
        PAGES_DOWNLOADED.inc()
        try:
            async with self._session.get(url, allow_redirects=True) as resp:
                if not 200 <= resp.status < 300:
                    logger.debug(f"HTTP error {resp.status} for {url}")
                    FETCH_FAILURES.labels(reason="status").inc()
                    return None

                content_length = resp.headers.get("Content-Length")
                if content_length:
                    try:
                        if int(content_length) > self.max_bytes:
                            logger.info(
                                f"Response too large ({content_length} bytes): {url}"
                            )
                            FETCH_FAILURES.labels(reason="oversize").inc()
                            return None
                    except ValueError:
                        pass

                body = bytearray()
                while True:
                    chunk = await resp.content.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        logger.info(f"Response exceeded {self.max_bytes} bytes: {url}")
                        FETCH_FAILURES.labels(reason="oversize").inc()
                        resp.close()
                        return None

                return Response(
                    url=url,
                    status=resp.status,
                    headers=resp.headers,
                    body=bytes(body),
                    elapsed=time.monotonic() - started,
                    encoding=resp.charset or "utf-8",
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Network error for {url}: {e!r}")
            FETCH_FAILURES.labels(reason="network").inc()
            return None

    def is_acceptable(self, headers: Mapping[str, str]) -> bool:
        """HTML content in one of the target languages (untagged means English)."""
        return self._rejection_reason(headers) is None

    def _rejection_reason(self, headers: Mapping[str, str]) -> str | None:
        if "html" not in (headers.get("Content-Type") or "").lower():
            return "content_type"
        if not self._language_re.search(headers.get("Content-Language") or "en"):
            return "language"
        return None

    def accept(self, response: Response) -> bool:
        """Like is_acceptable, but logs and counts rejections."""
        reason = self._rejection_reason(response.headers)
        if reason is not None:
            logger.debug(f"Rejected {response.url}: {reason}")
            FETCH_FAILURES.labels(reason=reason).inc()
            return False
        return True

    async def resolve(self, host: str) -> str | None:
        """Resolve `host` (optionally with port) to an address, None on failure."""
        hostname = urlsplit(f"//{host}").hostname or host
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(hostname, None), timeout=self.dns_timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.info(f"DNS lookup failed for {hostname}: {e!r}")
            return None
        if not infos:
            return None
        return infos[0][4][0]
