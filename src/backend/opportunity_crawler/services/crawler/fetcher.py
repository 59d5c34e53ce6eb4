"""
Polite HTTP page fetcher.

Every request passes through the blacklist, robots.txt and per-host
politeness before going out, and every outcome (including transport
failures) comes back as a FetchResult rather than an exception.
"""

import asyncio
import time
from typing import Any

import httpx

from opportunity_crawler.core.config import DEFAULT_USER_AGENT, Settings, get_settings
from opportunity_crawler.core.logging import LoggerMixin
from opportunity_crawler.models.fetch_log import FetchStatus
from opportunity_crawler.services.crawler.content import looks_blocked, looks_like_login_wall
from opportunity_crawler.services.crawler.models import ConditionalHeaders, FetchResult
from opportunity_crawler.services.crawler.politeness import Clock, PolitenessController, Sleep
from opportunity_crawler.services.crawler.policy import get_host, is_blacklisted_host
from opportunity_crawler.services.crawler.robots import RobotsPolicyCache

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
BLOCKED_HTTP_STATUSES = (403, 429)


class FetchClient(LoggerMixin):
    """
    Fetches pages on behalf of one crawl run.

    Owns the httpx client, the robots cache and the politeness state, so two
    runs never share host clocks. Use as an async context manager or call
    aclose() when done.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        politeness: PolitenessController | None = None,
        robots: RobotsPolicyCache | None = None,
        block_penalty_factor: float = 2.0,
        clock: Clock = time.monotonic,
    ):
        self._owns_client = client is None
        # fetch_page bounds each exchange with timeout_ms; no httpx-level timeout on top
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=None)
        self.user_agent = user_agent
        self.politeness = politeness or PolitenessController(clock=clock)
        self.robots = robots or RobotsPolicyCache(self._client, clock=clock)
        self.block_penalty_factor = block_penalty_factor
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> "FetchClient":
        """Build a client that owns its httpx session; transport, clock and sleep are for tests."""
        settings = settings or get_settings()
        client = httpx.AsyncClient(follow_redirects=True, timeout=None, transport=transport)
        fetcher = cls(
            client=client,
            user_agent=settings.crawler_user_agent,
            politeness=PolitenessController(
                backoff_base_ms=settings.crawler_backoff_base_ms,
                backoff_max_ms=settings.crawler_backoff_max_ms,
                clock=clock,
                sleep=sleep,
            ),
            robots=RobotsPolicyCache(client, ttl_seconds=settings.crawler_robots_ttl_seconds, clock=clock),
            block_penalty_factor=settings.crawler_block_penalty_factor,
            clock=clock,
        )
        fetcher._owns_client = True
        return fetcher

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_page(
        self,
        url: str,
        canonical_url: str | None = None,
        *,
        timeout_ms: int = 20_000,
        min_delay_ms: int = 750,
        max_bytes: int = 450_000,
        conditional: ConditionalHeaders | None = None,
        respect_robots: bool = True,
    ) -> FetchResult:
        """
        Fetch one page politely.

        Args:
            url: URL to request
            canonical_url: Identity of the page for storage (defaults to url)
            timeout_ms: Hard limit for the whole HTTP exchange
            min_delay_ms: Minimum spacing between requests to the same host
            max_bytes: Bodies larger than this are rejected
            conditional: Stored ETag / Last-Modified to replay
            respect_robots: Consult robots.txt before fetching

        Returns:
            FetchResult: Never raises for network or policy failures
        """
        canonical_url = canonical_url or url

        if is_blacklisted_host(url):
            return FetchResult(
                status=FetchStatus.BLOCKED,
                fetched_url=url,
                canonical_url=canonical_url,
                blocked_reason="blacklisted_host",
            )

        if respect_robots and not await self.robots.is_allowed(url, self.user_agent):
            return FetchResult(
                status=FetchStatus.BLOCKED,
                fetched_url=url,
                canonical_url=canonical_url,
                http_status=403,
                blocked_reason="robots_disallow",
            )

        host = get_host(url) or "unknown"
        await self.politeness.acquire(host, min_delay_ms)

        headers = {"User-Agent": self.user_agent, "Accept": HTML_ACCEPT}
        if conditional and conditional.etag:
            headers["If-None-Match"] = conditional.etag
        if conditional and conditional.last_modified:
            headers["If-Modified-Since"] = conditional.last_modified

        started = self._clock()
        try:
            result = await asyncio.wait_for(
                self._request(url, canonical_url, host, headers, max_bytes, started),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            result = self._error(url, canonical_url, started, f"Request timed out after {timeout_ms} ms")
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            result = self._error(url, canonical_url, started, str(e) or e.__class__.__name__)

        self.logger.info(
            "Page fetched",
            url=url,
            status=result.status.value,
            http_status=result.http_status,
            elapsed_ms=result.elapsed_ms,
            blocked_reason=result.blocked_reason,
            error=result.error_message,
        )
        return result

    async def _request(
        self,
        url: str,
        canonical_url: str,
        host: str,
        headers: dict[str, str],
        max_bytes: int,
        started: float,
    ) -> FetchResult:
        async with self._client.stream("GET", url, headers=headers) as response:
            result = FetchResult(
                status=FetchStatus.OK,
                fetched_url=str(response.url),
                canonical_url=canonical_url,
                http_status=response.status_code,
                etag=response.headers.get("etag"),
                last_modified=response.headers.get("last-modified"),
            )

            if response.status_code == 304:
                result.status = FetchStatus.NOT_MODIFIED
                result.response_bytes = 0
                result.elapsed_ms = self._elapsed_ms(started)
                return result

            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > max_bytes:
                return self._too_large(result, int(declared), started)

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > max_bytes:
                    return self._too_large(result, len(body), started)

        result.elapsed_ms = self._elapsed_ms(started)
        result.response_bytes = len(body)
        text = body.decode("utf-8", errors="replace")

        if looks_blocked(text):
            self.politeness.penalize(host, self.block_penalty_factor)
            result.status = FetchStatus.BLOCKED
            result.blocked_reason = "blocked_content"
            return result

        if looks_like_login_wall(text):
            self.politeness.penalize(host, self.block_penalty_factor)
            result.status = FetchStatus.BLOCKED
            result.blocked_reason = "login_wall"
            return result

        if result.http_status in BLOCKED_HTTP_STATUSES:
            self.politeness.penalize(host, self.block_penalty_factor)
            result.status = FetchStatus.BLOCKED
            result.blocked_reason = "http_blocked"
            result.error_message = f"HTTP {result.http_status}"
            return result

        if not response.is_success:
            result.status = FetchStatus.ERROR
            result.error_message = f"HTTP {result.http_status}"
            return result

        result.body_text = text
        return result

    def _too_large(self, result: FetchResult, size: int, started: float) -> FetchResult:
        result.status = FetchStatus.ERROR
        result.response_bytes = size
        result.elapsed_ms = self._elapsed_ms(started)
        result.error_message = f"Response too large ({size} bytes)"
        return result

    def _error(self, url: str, canonical_url: str, started: float, message: str) -> FetchResult:
        return FetchResult(
            status=FetchStatus.ERROR,
            fetched_url=url,
            canonical_url=canonical_url,
            elapsed_ms=self._elapsed_ms(started),
            error_message=message,
        )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self._clock() - started) * 1000))
