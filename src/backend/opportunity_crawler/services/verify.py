"""
Verify workflow.

Re-fetches stored opportunities (least recently verified first) with their
cache validators, refreshes freshness and status, and rewrites the extracted
fields only when the page content actually changed.
"""

import math
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.core.logging import LoggerMixin
from opportunity_crawler.models import FetchAction, FetchStatus, OpportunityStatus, ProgramType
from opportunity_crawler.schemas import OpportunityResponse, VerifySummary
from opportunity_crawler.services.crawler.builder import OpportunityBuilder
from opportunity_crawler.services.crawler.content import looks_blocked, looks_like_login_wall
from opportunity_crawler.services.crawler.fetcher import FetchClient
from opportunity_crawler.services.crawler.models import ConditionalHeaders
from opportunity_crawler.services.crawler.safety_gate import safety_gate
from opportunity_crawler.services.discover import utcnow
from opportunity_crawler.services.fetch_log import record_fetch
from opportunity_crawler.services.store import OpportunityStore

VERIFIABLE_STATUSES = [
    OpportunityStatus.ACTIVE,
    OpportunityStatus.NEEDS_REVIEW,
    OpportunityStatus.BLOCKED,
]

FRESHNESS_DECAY_PER_HOUR = 5


def freshness_score(last_verified_at: datetime, now: datetime) -> int:
    """Linear decay from 100, losing 5 points per hour since the last verification."""
    if last_verified_at.tzinfo is None:
        last_verified_at = last_verified_at.replace(tzinfo=timezone.utc)
    hours = (now - last_verified_at).total_seconds() / 3600
    score = 100 - math.floor(hours * FRESHNESS_DECAY_PER_HOUR)
    return max(0, min(100, score))


class VerifyWorkflow(LoggerMixin):
    """Re-checks stored opportunities against their live pages."""

    def __init__(
        self,
        store: OpportunityStore,
        fetcher: FetchClient,
        builder: OpportunityBuilder | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.fetcher = fetcher
        self.builder = builder or OpportunityBuilder()
        self.settings = settings or get_settings()
        self._now = now

    async def run(self, program_type: ProgramType | None = None, limit: int | None = None) -> VerifySummary:
        if limit is None:
            limit = self.settings.verify_default_limit
        rows = await self.store.list_opportunities_to_verify(VERIFIABLE_STATUSES, program_type, limit)
        summary = VerifySummary()

        self.logger.info(
            "Verify started",
            program_type=program_type.value if program_type else None,
            limit=limit,
            rows=len(rows),
        )

        for row in rows:
            summary.checked += 1
            try:
                await self._verify_one(row, summary)
            except Exception as e:
                summary.errors += 1
                self.logger.error("Verify failed for opportunity", opportunity_id=str(row.id), error=str(e))

        self.logger.info("Verify finished", **summary.model_dump())
        return summary

    async def _verify_one(self, row: OpportunityResponse, summary: VerifySummary) -> None:
        result = await self.fetcher.fetch_page(
            row.canonical_url,
            row.canonical_url,
            timeout_ms=self.settings.crawler_timeout_ms,
            min_delay_ms=self.settings.verify_min_delay_ms,
            max_bytes=self.settings.crawler_max_response_bytes,
            conditional=ConditionalHeaders(etag=row.etag, last_modified=row.page_last_modified),
            respect_robots=self.settings.verify_respect_robots,
        )
        await record_fetch(self.store, FetchAction.VERIFY, result, row.program_type)

        now = self._now()

        if result.status == FetchStatus.NOT_MODIFIED:
            await self.store.update_opportunity(row.id, {
                "last_verified_at": now,
                "freshness_score": freshness_score(row.last_verified_at, now),
                "status": OpportunityStatus.ACTIVE,
                "status_reason": None,
            })
            summary.not_modified += 1
            return

        if result.status == FetchStatus.BLOCKED:
            await self.store.update_opportunity(row.id, {
                "last_verified_at": now,
                "status": OpportunityStatus.BLOCKED,
                "status_reason": result.blocked_reason,
            })
            summary.blocked += 1
            return

        if not result.ok:
            summary.errors += 1
            return

        built = self.builder.build(
            result.body_text,
            row.canonical_url,
            etag=result.etag,
            last_modified=result.last_modified,
        )
        decision = safety_gate(
            blocked=looks_blocked(result.body_text),
            login_wall=looks_like_login_wall(result.body_text),
            application_url=built.application_url.value,
            deadline_date=built.deadline.value,
            deadline_confidence=built.deadline.confidence,
            today=now.date(),
        )

        values: dict[str, Any] = {
            "last_verified_at": now,
            "freshness_score": freshness_score(row.last_verified_at, now),
            "status": decision.status,
            "status_reason": decision.reason,
        }

        if built.content_hash == row.content_hash:
            await self.store.update_opportunity(row.id, values)
            summary.unchanged += 1
            return

        values.update({
            "title_clean": built.title_clean[:500],
            "summary": built.summary,
            "funding_type": built.funding.value,
            "funding_confidence": built.funding.confidence,
            "funding_evidence": built.funding.evidence,
            "international_allowed": built.international.value,
            "eligibility_confidence": built.international.confidence,
            "eligibility_evidence": built.international.evidence,
            "start_term": built.start_term.value,
            "deadline_date": built.deadline.value,
            "deadline_confidence": built.deadline.confidence,
            "deadline_evidence": built.deadline.evidence,
            "application_url": built.application_url.value or row.application_url,
            "content_hash": built.content_hash,
            "page_last_modified": built.page_last_modified,
            "etag": built.etag,
        })
        await self.store.update_opportunity(row.id, values)
        summary.updated += 1
