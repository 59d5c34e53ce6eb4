"""
Minimal robots.txt support with a per-host TTL cache.

Only the wildcard user-agent group and its Disallow rules are honored. Any
failure to obtain robots.txt is treated as "allow all".
"""

import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from opportunity_crawler.core.logging import get_logger
from opportunity_crawler.services.crawler.politeness import Clock
from opportunity_crawler.services.crawler.policy import get_host

logger = get_logger(__name__)

ROBOTS_TTL_SECONDS = 6 * 60 * 60
ROBOTS_ACCEPT = "text/plain,*/*;q=0.8"


@dataclass
class RobotsCacheEntry:
    fetched_at: float
    disallow: list[str]


def parse_robots(text: str) -> list[str]:
    """Collect the Disallow paths of the `User-agent: *` group."""
    in_global = False
    disallow: list[str] = []

    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue

        key, _, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            in_global = value == "*"
        elif in_global and key == "disallow" and value:
            disallow.append(value)

    return disallow


def is_path_allowed(disallow: list[str], path: str) -> bool:
    # A bare "/" rule is skipped, so whole-site disallows do not block crawling
    return not any(rule != "/" and path.startswith(rule) for rule in disallow)


class RobotsPolicyCache:
    """Per-host robots.txt rules, fetched lazily and kept for ttl_seconds."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        ttl_seconds: int = ROBOTS_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, RobotsCacheEntry] = {}

    async def is_allowed(self, url: str, user_agent: str) -> bool:
        host = get_host(url)
        if host is None:
            return True
        parts = urlsplit(url)
        path = parts.path or "/"

        now = self._clock()
        entry = self._entries.get(host)
        if entry is None or now - entry.fetched_at >= self.ttl_seconds:
            entry = RobotsCacheEntry(
                fetched_at=now,
                disallow=await self._load(f"{parts.scheme}://{parts.netloc}", user_agent),
            )
            self._entries[host] = entry

        return is_path_allowed(entry.disallow, path)

    async def _load(self, origin: str, user_agent: str) -> list[str]:
        robots_url = f"{origin}/robots.txt"
        try:
            response = await self._client.get(
                robots_url,
                headers={"User-Agent": user_agent, "Accept": ROBOTS_ACCEPT},
            )
        except httpx.HTTPError as e:
            logger.warning("robots.txt unavailable, allowing all", url=robots_url, error=str(e))
            return []

        if not response.is_success:
            logger.debug("robots.txt not found", url=robots_url, http_status=response.status_code)
            return []
        return parse_robots(response.text)
