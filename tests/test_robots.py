import httpx
import pytest

from conftest import FakeClock
from opportunity_crawler.services.crawler.robots import RobotsPolicyCache, is_path_allowed, parse_robots

ROBOTS = """
# comment line
User-agent: Googlebot
Disallow: /google-only

User-agent: *
Disallow: /private   # trailing comment
Disallow:
Allow: /private/open
"""


def test_parse_robots_reads_only_wildcard_group():
    assert parse_robots(ROBOTS) == ["/private"]


def test_parse_robots_handles_crlf_and_case():
    text = "USER-AGENT: *\r\nDISALLOW: /admin\r\n"
    assert parse_robots(text) == ["/admin"]


def test_is_path_allowed_prefix_match():
    assert not is_path_allowed(["/private"], "/private/x")
    assert is_path_allowed(["/private"], "/public/x")


def test_bare_slash_rule_is_ignored():
    assert is_path_allowed(["/"], "/anything")


def _robots_client(text: str, status: int = 200, calls: list | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status, text=text)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_cache_disallows_private_and_allows_public():
    async with _robots_client("User-agent: *\nDisallow: /private") as client:
        cache = RobotsPolicyCache(client)

        assert not await cache.is_allowed("https://example.edu/private/x", "bot")
        assert await cache.is_allowed("https://example.edu/public/x", "bot")


@pytest.mark.asyncio
async def test_cache_fetches_once_per_host_within_ttl():
    calls: list[str] = []
    clock = FakeClock()
    async with _robots_client("User-agent: *\nDisallow: /private", calls=calls) as client:
        cache = RobotsPolicyCache(client, ttl_seconds=60, clock=clock)

        await cache.is_allowed("https://www.example.edu/a", "bot")
        await cache.is_allowed("https://example.edu/b", "bot")
        assert calls == ["https://www.example.edu/robots.txt"]

        clock.now += 61
        await cache.is_allowed("https://example.edu/c", "bot")
        assert len(calls) == 2


@pytest.mark.asyncio
async def test_missing_robots_allows_everything():
    async with _robots_client("Disallow: /", status=404) as client:
        cache = RobotsPolicyCache(client)
        assert await cache.is_allowed("https://example.edu/private", "bot")


@pytest.mark.asyncio
async def test_transport_error_fails_open():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        cache = RobotsPolicyCache(client)
        assert await cache.is_allowed("https://example.edu/private", "bot")


@pytest.mark.asyncio
async def test_unparseable_url_is_allowed():
    async with _robots_client("") as client:
        cache = RobotsPolicyCache(client)
        assert await cache.is_allowed("not a url", "bot")
