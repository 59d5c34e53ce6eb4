"""
Schemas for Opportunity persistence payloads and read models.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from opportunity_crawler.models.opportunity import (
    Confidence,
    FundingType,
    OpportunityStatus,
    ProgramType,
    TriState,
)
from opportunity_crawler.schemas.common import BaseSchema


class OpportunityExtractedFields(BaseSchema):
    """Every field derived from page content; rewritten together when content changes."""

    title_clean: str = Field(min_length=1, max_length=500)
    summary: str = Field(min_length=1)
    funding_type: FundingType = FundingType.UNKNOWN
    funding_confidence: Confidence = Confidence.LOW
    funding_evidence: str | None = None
    international_allowed: TriState = TriState.UNKNOWN
    eligibility_confidence: Confidence = Confidence.LOW
    eligibility_evidence: str | None = None
    start_term: str | None = None
    deadline_date: date | None = None
    deadline_confidence: Confidence = Confidence.LOW
    deadline_evidence: str | None = None
    application_url: str = Field(min_length=1)
    content_hash: str = Field(min_length=1)
    page_last_modified: str | None = None
    etag: str | None = None


class OpportunityUpsert(OpportunityExtractedFields):
    """Full row written by discover, keyed by (canonical_url, program_type)."""

    program_type: ProgramType
    institution_name: str = Field(min_length=1, max_length=255)
    source_url: str = Field(min_length=1)
    canonical_url: str = Field(min_length=1)
    last_verified_at: datetime
    freshness_score: int = Field(ge=0, le=100)
    status: OpportunityStatus
    status_reason: str | None = None


class OpportunityResponse(OpportunityUpsert):
    """Stored opportunity as read back from the store."""

    id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None
