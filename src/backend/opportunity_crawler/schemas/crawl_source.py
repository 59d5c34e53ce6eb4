"""
Schemas for CrawlSource registry rows.

The registry is owned elsewhere; the crawler only needs a read model.
"""

from uuid import UUID

from pydantic import Field

from opportunity_crawler.models.crawl_source import SourceStrategy
from opportunity_crawler.models.opportunity import ProgramType
from opportunity_crawler.schemas.common import BaseSchema


class CrawlSourceResponse(BaseSchema):
    """Read model for a crawl source, built from the ORM row."""

    id: UUID
    program_type: ProgramType
    strategy: SourceStrategy = SourceStrategy.CURATED
    seed_key: str | None = None
    base_url: str = Field(min_length=1)
    allow_paths: list[str] = Field(default_factory=list)
    block_paths: list[str] = Field(default_factory=list)
    max_depth: int = 1
    active: bool = True
    respect_robots: bool = True
    max_requests_per_run: int = Field(default=20, ge=0)
    min_delay_ms: int = Field(default=750, ge=0)
