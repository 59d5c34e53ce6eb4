"""
FetchLog model - Append-only audit trail of every fetch attempt.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from opportunity_crawler.db.base import Base, enum_values
from opportunity_crawler.models.opportunity import ProgramType


class FetchAction(str, enum.Enum):
    """Workflow that issued the fetch."""

    DISCOVER = "DISCOVER"
    VERIFY = "VERIFY"


class FetchStatus(str, enum.Enum):
    """Outcome classification of a single fetch."""

    OK = "OK"
    NOT_MODIFIED = "NOT_MODIFIED"
    BLOCKED = "BLOCKED"
    ERROR = "ERROR"


class FetchLog(Base):
    """One row per fetch attempt, written best-effort."""

    __tablename__ = "fetch_logs"

    action: Mapped[FetchAction] = mapped_column(
        Enum(FetchAction, name="fetchaction", create_type=False, values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[FetchStatus] = mapped_column(
        Enum(FetchStatus, name="fetchstatus", create_type=False, values_callable=enum_values),
        nullable=False,
    )
    program_type: Mapped[ProgramType | None] = mapped_column(
        Enum(ProgramType, name="programtype", create_type=False, values_callable=enum_values),
        nullable=True,
    )
    source_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crawl_sources.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    canonical_url: Mapped[str | None] = mapped_column(String(2000), nullable=True, index=True)
    fetched_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    http_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    elapsed_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    etag: Mapped[str | None] = mapped_column(String(255), nullable=True)
    page_last_modified: Mapped[str | None] = mapped_column(String(100), nullable=True)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    blocked_reason: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<FetchLog(id={self.id}, action='{self.action}', status='{self.status}', url='{self.fetched_url[:60]}')>"
