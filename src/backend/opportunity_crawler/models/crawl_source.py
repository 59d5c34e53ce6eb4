"""
CrawlSource model - Configuration-driven source definitions.

Each source pairs an external site with the program type it lists. Rows are
owned by the source registry; the crawler only reads them.
"""

import enum

from sqlalchemy import Boolean, Enum, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from opportunity_crawler.db.base import Base, TimestampMixin, enum_values
from opportunity_crawler.models.opportunity import ProgramType


class SourceStrategy(str, enum.Enum):
    """How a source entered the registry."""

    GOOGLE_SEED = "GOOGLE_SEED"
    CURATED = "CURATED"
    OPPORTUNISTIC = "OPPORTUNISTIC"


class CrawlSource(Base, TimestampMixin):
    """
    Configuration for a crawlable site.

    Attributes:
        program_type: Program type every opportunity found here is filed under
        strategy: How the source was found (seeded search, curated, opportunistic)
        base_url: Page the discover run starts from
        allow_paths: Path prefixes links must start with (empty = all paths)
        block_paths: Path prefixes that are never followed
        respect_robots: Whether robots.txt is consulted before each fetch
        max_requests_per_run: Cap on followed links per discover run
        min_delay_ms: Minimum gap between two requests to the source's host
    """

    __tablename__ = "crawl_sources"

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
    strategy: Mapped[SourceStrategy] = mapped_column(
        Enum(
            SourceStrategy,
            name="sourcestrategy",
            create_type=False,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    seed_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    base_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    allow_paths: Mapped[list[str]] = mapped_column(ARRAY(String(500)), default=list, nullable=False)
    block_paths: Mapped[list[str]] = mapped_column(ARRAY(String(500)), default=list, nullable=False)
    max_depth: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Operational
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    respect_robots: Mapped[bool] = mapped_column(Boolean, default=True)
    max_requests_per_run: Mapped[int] = mapped_column(
        Integer,
        default=20,
        comment="Followed links per discover run (base page not counted)",
    )
    min_delay_ms: Mapped[int] = mapped_column(
        Integer,
        default=750,
        comment="Minimum delay between requests to this host in milliseconds",
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CrawlSource(id={self.id}, program_type='{self.program_type}', base_url='{self.base_url}')>"
