"""
Schema for fetch-log rows.
"""

from uuid import UUID

from opportunity_crawler.models.fetch_log import FetchAction, FetchStatus
from opportunity_crawler.models.opportunity import ProgramType
from opportunity_crawler.schemas.common import BaseSchema


class FetchLogCreate(BaseSchema):
    """One audit row per fetch attempt."""

    action: FetchAction
    status: FetchStatus
    program_type: ProgramType | None = None
    source_id: UUID | None = None
    canonical_url: str | None = None
    fetched_url: str
    http_status: int | None = None
    elapsed_ms: int | None = None
    response_bytes: int | None = None
    etag: str | None = None
    page_last_modified: str | None = None
    content_hash: str | None = None
    blocked_reason: str | None = None
    error_message: str | None = None
