"""
SQLAlchemy ORM models for the opportunity crawler.

Sources are read from the registry, opportunities are upserted by the
discover/verify workflows, and every fetch attempt is appended to the fetch log.
"""

from opportunity_crawler.models.opportunity import (
    Confidence,
    FundingType,
    Opportunity,
    OpportunityStatus,
    ProgramType,
    TriState,
)
from opportunity_crawler.models.crawl_source import CrawlSource, SourceStrategy
from opportunity_crawler.models.fetch_log import FetchAction, FetchLog, FetchStatus

__all__ = [
    # Opportunity
    "Opportunity",
    "OpportunityStatus",
    "ProgramType",
    "Confidence",
    "FundingType",
    "TriState",
    # Crawl Source
    "CrawlSource",
    "SourceStrategy",
    # Fetch Log
    "FetchLog",
    "FetchAction",
    "FetchStatus",
]
