"""
Best-effort fetch telemetry.

A failed log insert is reported and dropped; it must never abort a crawl.
"""

from uuid import UUID

from opportunity_crawler.core.logging import get_logger
from opportunity_crawler.models import FetchAction, ProgramType
from opportunity_crawler.schemas import FetchLogCreate
from opportunity_crawler.services.crawler.content import CONTENT_HASH_CHARS, compute_content_hash
from opportunity_crawler.services.crawler.models import FetchResult
from opportunity_crawler.services.store import OpportunityStore

logger = get_logger(__name__)


def fetch_log_entry(
    action: FetchAction,
    result: FetchResult,
    program_type: ProgramType | None,
    source_id: UUID | None = None,
) -> FetchLogCreate:
    body_hash = None
    if result.body_text:
        body_hash = compute_content_hash(result.body_text[:CONTENT_HASH_CHARS])

    return FetchLogCreate(
        action=action,
        status=result.status,
        program_type=program_type,
        source_id=source_id,
        canonical_url=result.canonical_url,
        fetched_url=result.fetched_url,
        http_status=result.http_status,
        elapsed_ms=result.elapsed_ms,
        response_bytes=result.response_bytes,
        etag=result.etag,
        page_last_modified=result.last_modified,
        content_hash=body_hash,
        blocked_reason=result.blocked_reason,
        error_message=result.error_message,
    )


async def record_fetch(
    store: OpportunityStore,
    action: FetchAction,
    result: FetchResult,
    program_type: ProgramType | None,
    source_id: UUID | None = None,
) -> None:
    try:
        await store.insert_fetch_log(fetch_log_entry(action, result, program_type, source_id))
    except Exception as e:
        logger.warning(
            "Fetch log insert failed",
            action=action.value,
            url=result.fetched_url,
            error=str(e),
        )
