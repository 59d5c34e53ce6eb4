import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import InMemoryStore, html_page, make_opportunity, make_source
from opportunity_crawler.api.endpoints.cron import get_fetch_client, get_store, parse_limit, parse_program_type
from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.main import app
from opportunity_crawler.models import ProgramType

PREFIX = get_settings().api_prefix


class RecordingStore(InMemoryStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.verify_calls: list[tuple] = []
        self.source_filters: list = []

    async def list_active_sources(self, program_type=None):
        self.source_filters.append(program_type)
        return await super().list_active_sources(program_type)

    async def list_opportunities_to_verify(self, statuses, program_type=None, limit=25):
        self.verify_calls.append((program_type, limit))
        return await super().list_opportunities_to_verify(statuses, program_type, limit)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore([make_source(max_requests_per_run=0)])


@pytest.fixture
def client(store, make_fetcher, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=html_page('<a href="/apply">Apply</a>', title="PhD"))

    async def fetcher_override():
        async with make_fetcher(handler) as fetcher:
            yield fetcher

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_fetch_client] = fetcher_override
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_discover_trigger_returns_summary(client, store):
    response = client.get(f"{PREFIX}/cron/discover")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["result"]["sources"] == 1
    assert body["result"]["urls_visited"] == 1
    assert body["result"]["accepted"] == 1


def test_post_is_accepted(client):
    assert client.post(f"{PREFIX}/cron/reaper").json() == {"ok": True, "result": {"expired_count": 0}}


def test_unknown_program_type_means_no_filter(client, store):
    response = client.get(f"{PREFIX}/cron/discover", params={"program_type": "ASTRONAUT"})

    assert response.status_code == 200
    assert store.source_filters == [None]


def test_known_program_type_is_applied(client, store):
    client.get(f"{PREFIX}/cron/discover", params={"program_type": "INTERNSHIP"})
    assert store.source_filters == [ProgramType.INTERNSHIP]


def test_verify_limit_is_clamped(client, store):
    store.opportunities[("https://example.edu/phd", ProgramType.PHD)] = make_opportunity()

    client.get(f"{PREFIX}/cron/verify", params={"limit": "5000"})
    client.get(f"{PREFIX}/cron/verify", params={"limit": "0"})
    client.get(f"{PREFIX}/cron/verify")

    assert [limit for _, limit in store.verify_calls] == [200, 1, 25]


def test_cron_secret_is_enforced(client, settings):
    settings.cron_secret = "s3cret"

    denied = client.get(f"{PREFIX}/cron/reaper")
    wrong = client.get(f"{PREFIX}/cron/reaper", headers={"x-cron-secret": "nope"})
    allowed = client.get(f"{PREFIX}/cron/reaper", headers={"x-cron-secret": "s3cret"})

    assert denied.status_code == 401
    assert denied.json()["error"]["code"] == "UNAUTHORIZED"
    assert wrong.status_code == 401
    assert allowed.status_code == 200


def test_registry_failure_is_503(client, store):
    store.fail_registry = True

    response = client.get(f"{PREFIX}/cron/discover")

    assert response.status_code == 503
    assert response.json()["ok"] is False


def test_parse_helpers():
    settings = Settings(_env_file=None)
    assert parse_program_type("PHD") == ProgramType.PHD
    assert parse_program_type("phd") is None
    assert parse_program_type(None) is None
    assert parse_limit("abc", settings) is None
    assert parse_limit("-3", settings) == 1
    assert parse_limit("50", settings) == 50
