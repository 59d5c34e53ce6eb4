"""
Opportunity model - Core entity produced by the crawler.

Stores funding and position listings discovered on source sites, with a
confidence level and evidence snippet for every heuristically extracted field
and a publication status maintained by repeated verification.
"""

import enum
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from opportunity_crawler.db.base import Base, TimestampMixin, enum_values


class ProgramType(str, enum.Enum):
    """Kind of program a listing belongs to."""

    VISITING_RESEARCH = "VISITING_RESEARCH"
    INTERNSHIP = "INTERNSHIP"
    PHD = "PHD"


class Confidence(str, enum.Enum):
    """How much an extracted field can be trusted."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class FundingType(str, enum.Enum):
    """Funding classification of a listing."""

    FUNDED = "FUNDED"
    PARTIALLY_FUNDED = "PARTIALLY_FUNDED"
    EXTERNAL_FUNDING_OK = "EXTERNAL_FUNDING_OK"
    SELF_FUNDED_OK = "SELF_FUNDED_OK"
    UNKNOWN = "UNKNOWN"


class TriState(str, enum.Enum):
    """Yes / no / not stated."""

    YES = "YES"
    NO = "NO"
    UNKNOWN = "UNKNOWN"


class OpportunityStatus(str, enum.Enum):
    """Publication status of an opportunity."""

    ACTIVE = "ACTIVE"               # Reachable, has an application link, not past deadline
    NEEDS_REVIEW = "NEEDS_REVIEW"   # Reachable but incomplete
    BLOCKED = "BLOCKED"             # Bot wall, login wall or policy block
    EXPIRED = "EXPIRED"             # Deadline passed


class Opportunity(Base, TimestampMixin):
    """
    A discovered opportunity listing.

    Uniquely identified by (canonical_url, program_type); discover upserts on
    that key so re-crawling a page never creates a duplicate.
    """

    __tablename__ = "opportunities"
    __table_args__ = (
        UniqueConstraint("canonical_url", "program_type", name="uq_opportunities_canonical_url_program_type"),
        CheckConstraint("freshness_score >= 0 AND freshness_score <= 100", name="ck_opportunities_freshness_range"),
    )

    program_type: Mapped[ProgramType] = mapped_column(
        Enum(
            ProgramType,
            name="programtype",
            create_type=False,
            values_callable=enum_values,
        ),
        nullable=False,
        index=True,
    )

    # Basic Information
    institution_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    title_clean: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, comment="One-line, ~15 word summary")

    # Funding
    funding_type: Mapped[FundingType] = mapped_column(
        Enum(FundingType, name="fundingtype", create_type=False, values_callable=enum_values),
        default=FundingType.UNKNOWN,
        nullable=False,
    )
    funding_confidence: Mapped[Confidence] = mapped_column(
        Enum(Confidence, name="confidence", create_type=False, values_callable=enum_values),
        default=Confidence.LOW,
        nullable=False,
    )
    funding_evidence: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Eligibility
    international_allowed: Mapped[TriState] = mapped_column(
        Enum(TriState, name="tristate", create_type=False, values_callable=enum_values),
        default=TriState.UNKNOWN,
        nullable=False,
    )
    eligibility_confidence: Mapped[Confidence] = mapped_column(
        Enum(Confidence, name="confidence", create_type=False, values_callable=enum_values),
        default=Confidence.LOW,
        nullable=False,
    )
    eligibility_evidence: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_term: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Deadline
    deadline_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    deadline_confidence: Mapped[Confidence] = mapped_column(
        Enum(Confidence, name="confidence", create_type=False, values_callable=enum_values),
        default=Confidence.LOW,
        nullable=False,
    )
    deadline_evidence: Mapped[str | None] = mapped_column(Text, nullable=True)

    # URLs
    application_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    source_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    canonical_url: Mapped[str] = mapped_column(String(2000), nullable=False)

    # Verification
    last_verified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    freshness_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[OpportunityStatus] = mapped_column(
        Enum(
            OpportunityStatus,
            name="opportunitystatus",
            create_type=False,
            values_callable=enum_values,
        ),
        default=OpportunityStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    status_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Change detection
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    page_last_modified: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Raw Last-Modified header, replayed as If-Modified-Since",
    )
    etag: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Opportunity(id={self.id}, title='{self.title_clean[:50]}', status='{self.status}')>"
