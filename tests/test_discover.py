from datetime import date

import httpx
import pytest

from conftest import NOW, InMemoryStore, html_page, make_source
from opportunity_crawler.core.exceptions import SourceRegistryException
from opportunity_crawler.models import Confidence, FetchAction, FetchStatus, OpportunityStatus, ProgramType
from opportunity_crawler.services.discover import DiscoverWorkflow, select_links

LISTING = html_page(
    "".join(f'<a href="/programs/p{i}">Program {i}</a>' for i in range(5))
    + '<a href="https://other.org/x">Elsewhere</a>',
    title="Graduate programs",
)


def program_page(title: str, body: str = "") -> str:
    return html_page(f'<p>{body}</p><a href="/apply">Apply here</a>', title=title)


def workflow(store, fetcher, settings):
    return DiscoverWorkflow(store, fetcher, settings=settings, now=lambda: NOW)


@pytest.mark.asyncio
async def test_discover_caps_followed_links(make_fetcher, settings):
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.path in ("", "/"):
            return httpx.Response(200, text=LISTING)
        return httpx.Response(200, text=program_page(request.url.path))

    store = InMemoryStore([make_source(base_url="https://example.edu", max_requests_per_run=2)])
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run()

    assert summary.sources == 1
    assert summary.urls_visited == 3
    assert len(requested) == 3
    assert requested[1:] == ["https://example.edu/programs/p0", "https://example.edu/programs/p1"]
    assert summary.accepted == 3
    assert len(store.fetch_logs) == 3
    assert all(log.action == FetchAction.DISCOVER for log in store.fetch_logs)


@pytest.mark.asyncio
async def test_discover_end_to_end_opportunity(make_fetcher, settings):
    page = html_page(
        '<p>Deadline: 2026-03-01</p><a href="/apply">Apply here</a>',
        title="Funded PhD in X",
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/phd":
            return httpx.Response(200, text=page, headers={"ETag": '"v1"'})
        return httpx.Response(404)

    source = make_source(base_url="https://example.edu/phd", max_requests_per_run=0)
    store = InMemoryStore([source])
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run()

    row = store.get("https://example.edu/phd")
    assert row is not None
    assert row.title_clean == "Funded PhD in X"
    assert row.deadline_date == date(2026, 3, 1)
    assert row.deadline_confidence == Confidence.HIGH
    assert row.status == OpportunityStatus.ACTIVE
    assert row.status_reason is None
    assert row.application_url == "https://example.edu/apply"
    assert row.freshness_score == settings.discover_initial_freshness
    assert row.last_verified_at == NOW
    assert row.etag == '"v1"'
    assert row.source_url == "https://example.edu/phd"
    assert summary.accepted == 1
    assert store.fetch_logs[0].source_id == source.id
    assert store.fetch_logs[0].content_hash is not None


@pytest.mark.asyncio
async def test_discover_upsert_is_keyed_by_url_and_program(make_fetcher, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=program_page("Same page"))

    store = InMemoryStore([
        make_source(base_url="https://example.edu/x", max_requests_per_run=0),
        make_source(base_url="https://example.edu/x", max_requests_per_run=0),
        make_source(
            base_url="https://example.edu/x",
            max_requests_per_run=0,
            program_type=ProgramType.INTERNSHIP,
        ),
    ])
    async with make_fetcher(handler) as fetcher:
        await workflow(store, fetcher, settings).run()

    assert len(store.opportunities) == 2


@pytest.mark.asyncio
async def test_discover_counts_expired_and_missing_application_url(make_fetcher, settings):
    pages = {
        "/": html_page('<a href="/old">old</a><a href="/bare">bare</a>', title="Index"),
        "/old": program_page("Old call", "Deadline: 2025-01-01"),
        "/bare": html_page("<p>No links at all</p>", title="Bare"),
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=pages[request.url.path or "/"])

    store = InMemoryStore([make_source(base_url="https://example.edu/")])
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run()

    assert summary.expired == 1
    assert summary.accepted == 2
    bare = store.get("https://example.edu/bare")
    assert bare.status == OpportunityStatus.NEEDS_REVIEW
    assert bare.status_reason == "missing_application_url"
    assert bare.application_url == "https://example.edu/bare"
    assert store.get("https://example.edu/old").status == OpportunityStatus.EXPIRED


@pytest.mark.asyncio
async def test_discover_continues_past_failures(make_fetcher, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/":
            return httpx.Response(200, text=html_page(
                '<a href="/broken">a</a><a href="/blocked">b</a><a href="/fails-upsert">c</a><a href="/good">d</a>'
            ))
        if request.url.path == "/broken":
            return httpx.Response(500)
        if request.url.path == "/blocked":
            return httpx.Response(403)
        return httpx.Response(200, text=program_page(request.url.path))

    store = InMemoryStore([make_source(base_url="https://example.edu/")])
    store.fail_upsert_urls.add("https://example.edu/fails-upsert")
    store.fail_fetch_log = True
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run()

    assert summary.urls_visited == 5
    assert summary.blocked == 1
    assert summary.errors == 2
    assert store.get("https://example.edu/good") is not None
    assert store.get("https://example.edu/fails-upsert") is None


@pytest.mark.asyncio
async def test_discover_skips_links_when_base_fetch_fails(make_fetcher, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    store = InMemoryStore([make_source()])
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run()

    assert summary.urls_visited == 1
    assert summary.errors == 1
    assert store.fetch_logs[0].status == FetchStatus.ERROR
    assert store.fetch_logs[0].error_message == "HTTP 503"


@pytest.mark.asyncio
async def test_discover_filters_by_program_type(make_fetcher, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=program_page("x"))

    store = InMemoryStore([
        make_source(max_requests_per_run=0),
        make_source(program_type=ProgramType.INTERNSHIP, max_requests_per_run=0),
        make_source(active=False, max_requests_per_run=0),
    ])
    async with make_fetcher(handler) as fetcher:
        summary = await workflow(store, fetcher, settings).run(ProgramType.INTERNSHIP)

    assert summary.sources == 1
    assert summary.urls_visited == 1


@pytest.mark.asyncio
async def test_registry_failure_aborts_run(make_fetcher, settings):
    store = InMemoryStore()
    store.fail_registry = True
    async with make_fetcher(lambda request: httpx.Response(200)) as fetcher:
        with pytest.raises(SourceRegistryException):
            await workflow(store, fetcher, settings).run()


def test_select_links_filters_and_dedupes():
    source = make_source(
        base_url="https://example.edu/grad",
        allow_paths=["/grad"],
        block_paths=["/grad/login"],
        max_requests_per_run=10,
    )
    html = (
        '<a href="/grad">self</a>'
        '<a href="/grad#top">self anchor</a>'
        '<a href="/grad/phd">phd</a>'
        '<a href="/grad/phd#apply">phd again</a>'
        '<a href="/grad/login">login</a>'
        '<a href="/news">news</a>'
        '<a href="https://other.edu/grad/x">other</a>'
        '<a href="https://www.example.edu/grad/msc">www</a>'
    )
    assert select_links(html, source) == [
        "https://example.edu/grad/phd",
        "https://www.example.edu/grad/msc",
    ]
