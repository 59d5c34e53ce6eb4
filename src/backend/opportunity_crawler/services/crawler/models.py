"""
Transient data records passed between crawler stages.

None of these are persisted directly; the workflows fold them into store
payloads and fetch-log rows.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Generic, TypeVar

from opportunity_crawler.models.fetch_log import FetchStatus
from opportunity_crawler.models.opportunity import (
    Confidence,
    FundingType,
    OpportunityStatus,
    TriState,
)

T = TypeVar("T")


@dataclass(frozen=True)
class ConditionalHeaders:
    """Cache validators from a previous fetch, replayed on the next one."""
    etag: str | None = None
    last_modified: str | None = None


@dataclass
class FetchResult:
    """Outcome of one page fetch."""
    status: FetchStatus
    fetched_url: str
    canonical_url: str
    http_status: int | None = None
    elapsed_ms: int = 0
    response_bytes: int | None = None
    etag: str | None = None
    last_modified: str | None = None
    body_text: str | None = None
    blocked_reason: str | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK and self.body_text is not None


@dataclass(frozen=True)
class ExtractedField(Generic[T]):
    """A heuristically extracted value with how sure we are and why."""
    value: T
    confidence: Confidence = Confidence.LOW
    evidence: str | None = None


@dataclass
class BuiltOpportunity:
    """Everything the builder derived from one page."""
    content_hash: str
    title_clean: str
    summary: str
    deadline: ExtractedField[date | None]
    funding: ExtractedField[FundingType]
    international: ExtractedField[TriState]
    start_term: ExtractedField[str | None]
    application_url: ExtractedField[str | None]
    institution: ExtractedField[str]
    page_last_modified: str | None = None
    etag: str | None = None
    extras: dict[str, ExtractedField] = field(default_factory=dict)


@dataclass(frozen=True)
class GateDecision:
    """Publication status chosen by the safety gate."""
    status: OpportunityStatus
    reason: str | None = None
