"""
Discover workflow.

For every active source: fetch the base page, turn it into an opportunity,
then follow a capped set of same-host links from it and do the same for
each. URLs are processed one at a time; a failing URL is logged and counted
and the run moves on.
"""

from collections.abc import Callable
from datetime import datetime, timezone

from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.core.logging import LoggerMixin
from opportunity_crawler.models import FetchAction, FetchStatus, OpportunityStatus, ProgramType
from opportunity_crawler.schemas import CrawlSourceResponse, DiscoverSummary, OpportunityUpsert
from opportunity_crawler.services.crawler.builder import OpportunityBuilder
from opportunity_crawler.services.crawler.content import extract_links
from opportunity_crawler.services.crawler.fetcher import FetchClient
from opportunity_crawler.services.crawler.models import BuiltOpportunity, GateDecision
from opportunity_crawler.services.crawler.policy import same_host, strip_fragment, url_allowed_for_source
from opportunity_crawler.services.crawler.safety_gate import safety_gate
from opportunity_crawler.services.fetch_log import record_fetch
from opportunity_crawler.services.store import OpportunityStore

ACCEPTED_STATUSES = (OpportunityStatus.ACTIVE, OpportunityStatus.NEEDS_REVIEW)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def select_links(html: str, source: CrawlSourceResponse) -> list[str]:
    """Same-host, path-filtered, de-duplicated links of a page, capped per source."""
    base = strip_fragment(source.base_url)
    selected: list[str] = []
    seen = {base}
    for link in extract_links(html, source.base_url):
        link = strip_fragment(link)
        if link in seen:
            continue
        seen.add(link)
        if not same_host(link, source.base_url):
            continue
        if not url_allowed_for_source(link, source.allow_paths, source.block_paths):
            continue
        selected.append(link)
    return selected[: source.max_requests_per_run]


def build_upsert_payload(
    built: BuiltOpportunity,
    decision: GateDecision,
    program_type: ProgramType,
    canonical_url: str,
    source_url: str,
    verified_at: datetime,
    freshness_score: int,
) -> OpportunityUpsert:
    return OpportunityUpsert(
        program_type=program_type,
        institution_name=built.institution.value,
        title_clean=built.title_clean[:500],
        summary=built.summary,
        funding_type=built.funding.value,
        funding_confidence=built.funding.confidence,
        funding_evidence=built.funding.evidence,
        international_allowed=built.international.value,
        eligibility_confidence=built.international.confidence,
        eligibility_evidence=built.international.evidence,
        start_term=built.start_term.value,
        deadline_date=built.deadline.value,
        deadline_confidence=built.deadline.confidence,
        deadline_evidence=built.deadline.evidence,
        application_url=built.application_url.value or canonical_url,
        source_url=source_url,
        canonical_url=canonical_url,
        last_verified_at=verified_at,
        freshness_score=freshness_score,
        status=decision.status,
        status_reason=decision.reason,
        content_hash=built.content_hash,
        page_last_modified=built.page_last_modified,
        etag=built.etag,
    )


class DiscoverWorkflow(LoggerMixin):
    """Crawls the source registry and upserts what it finds."""

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

    async def run(self, program_type: ProgramType | None = None) -> DiscoverSummary:
        # A registry failure is the one error that aborts the run
        sources = await self.store.list_active_sources(program_type)
        summary = DiscoverSummary(sources=len(sources))

        self.logger.info(
            "Discover started",
            program_type=program_type.value if program_type else None,
            sources=len(sources),
        )

        for source in sources:
            body = await self._visit(source, source.base_url, summary)
            if body is None:
                continue
            for url in select_links(body, source):
                await self._visit(source, url, summary)

        self.logger.info("Discover finished", **summary.model_dump())
        return summary

    async def _visit(self, source: CrawlSourceResponse, url: str, summary: DiscoverSummary) -> str | None:
        """Fetch, log, build, gate and upsert one URL; returns the body whenever the fetch succeeded."""
        summary.urls_visited += 1
        body = None
        try:
            result = await self.fetcher.fetch_page(
                url,
                url,
                timeout_ms=self.settings.crawler_timeout_ms,
                min_delay_ms=source.min_delay_ms,
                max_bytes=self.settings.crawler_max_response_bytes,
                respect_robots=source.respect_robots,
            )
            await record_fetch(self.store, FetchAction.DISCOVER, result, source.program_type, source.id)

            if not result.ok:
                if result.status == FetchStatus.BLOCKED:
                    summary.blocked += 1
                elif result.status == FetchStatus.ERROR:
                    summary.errors += 1
                return None

            body = result.body_text
            built = self.builder.build(
                body,
                url,
                etag=result.etag,
                last_modified=result.last_modified,
            )
            now = self._now()
            decision = safety_gate(
                blocked=False,
                login_wall=False,
                application_url=built.application_url.value,
                deadline_date=built.deadline.value,
                deadline_confidence=built.deadline.confidence,
                today=now.date(),
            )
            await self.store.upsert_opportunity(
                build_upsert_payload(
                    built,
                    decision,
                    program_type=source.program_type,
                    canonical_url=url,
                    source_url=source.base_url,
                    verified_at=now,
                    freshness_score=self.settings.discover_initial_freshness,
                )
            )
        except Exception as e:
            summary.errors += 1
            self.logger.error("Discover failed for URL", url=url, source_id=str(source.id), error=str(e))
            return body

        if decision.status in ACCEPTED_STATUSES:
            summary.accepted += 1
        elif decision.status == OpportunityStatus.BLOCKED:
            summary.blocked += 1
        elif decision.status == OpportunityStatus.EXPIRED:
            summary.expired += 1
        return body
