from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

import httpx
import pytest

from opportunity_crawler.core.config import Settings
from opportunity_crawler.core.exceptions import SourceRegistryException
from opportunity_crawler.models import OpportunityStatus, ProgramType
from opportunity_crawler.schemas import (
    CrawlSourceResponse,
    FetchLogCreate,
    OpportunityResponse,
    OpportunityUpsert,
)
from opportunity_crawler.services.crawler.fetcher import FetchClient
from opportunity_crawler.services.store import REAPABLE_STATUSES, OpportunityStore

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class InMemoryStore(OpportunityStore):
    def __init__(self, sources: list[CrawlSourceResponse] | None = None):
        self.sources = sources or []
        self.opportunities: dict[tuple[str, ProgramType], OpportunityResponse] = {}
        self.fetch_logs: list[FetchLogCreate] = []
        self.updates: list[tuple[uuid.UUID, dict[str, Any]]] = []
        self.fail_registry = False
        self.fail_fetch_log = False
        self.fail_upsert_urls: set[str] = set()

    async def list_active_sources(self, program_type=None):
        if self.fail_registry:
            raise SourceRegistryException("registry down")
        return [
            s for s in self.sources
            if s.active and (program_type is None or s.program_type == program_type)
        ]

    async def upsert_opportunity(self, payload: OpportunityUpsert) -> None:
        if payload.canonical_url in self.fail_upsert_urls:
            raise RuntimeError("upsert failed")
        key = (payload.canonical_url, payload.program_type)
        existing = self.opportunities.get(key)
        self.opportunities[key] = OpportunityResponse(
            **payload.model_dump(),
            id=existing.id if existing else uuid.uuid4(),
        )

    async def list_opportunities_to_verify(self, statuses, program_type=None, limit=25):
        rows = [
            row for row in self.opportunities.values()
            if row.status in statuses and (program_type is None or row.program_type == program_type)
        ]
        rows.sort(key=lambda row: row.last_verified_at)
        return rows[:limit]

    async def update_opportunity(self, opportunity_id, values):
        self.updates.append((opportunity_id, values))
        for key, row in self.opportunities.items():
            if row.id == opportunity_id:
                self.opportunities[key] = row.model_copy(update=values)
                return

    async def insert_fetch_log(self, entry: FetchLogCreate) -> None:
        if self.fail_fetch_log:
            raise RuntimeError("fetch log unavailable")
        self.fetch_logs.append(entry)

    async def expire_past_deadlines(self, today: date) -> int:
        count = 0
        for key, row in self.opportunities.items():
            if row.deadline_date is not None and row.deadline_date < today and row.status in REAPABLE_STATUSES:
                self.opportunities[key] = row.model_copy(
                    update={"status": OpportunityStatus.EXPIRED, "status_reason": "deadline_passed"}
                )
                count += 1
        return count

    def get(self, canonical_url: str, program_type: ProgramType = ProgramType.PHD) -> OpportunityResponse | None:
        return self.opportunities.get((canonical_url, program_type))


def make_source(**overrides: Any) -> CrawlSourceResponse:
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "program_type": ProgramType.PHD,
        "base_url": "https://example.edu",
        "respect_robots": False,
        "max_requests_per_run": 20,
        "min_delay_ms": 750,
    }
    values.update(overrides)
    return CrawlSourceResponse(**values)


def make_opportunity(**overrides: Any) -> OpportunityResponse:
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "program_type": ProgramType.PHD,
        "institution_name": "EXAMPLE",
        "title_clean": "Funded PhD in X",
        "summary": "Funded PhD in X",
        "application_url": "https://example.edu/apply",
        "source_url": "https://example.edu",
        "canonical_url": "https://example.edu/phd",
        "last_verified_at": NOW,
        "freshness_score": 80,
        "status": OpportunityStatus.ACTIVE,
        "content_hash": "0" * 64,
        "etag": '"v1"',
        "page_last_modified": "Sun, 01 Feb 2026 00:00:00 GMT",
    }
    values.update(overrides)
    return OpportunityResponse(**values)


def html_page(body: str, title: str | None = None) -> str:
    h1 = f"<h1>{title}</h1>" if title else ""
    return f"<html><head><title>t</title></head><body>{h1}{body}</body></html>"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, database_url=None, cron_secret=None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_fetcher(settings: Settings, clock: FakeClock) -> Callable[..., FetchClient]:
    """Build a FetchClient over an httpx MockTransport handler with the fake clock."""

    def _make(handler: Callable[[httpx.Request], Any]) -> FetchClient:
        return FetchClient.from_settings(
            settings,
            transport=httpx.MockTransport(handler),
            clock=clock,
            sleep=clock.sleep,
        )

    return _make
