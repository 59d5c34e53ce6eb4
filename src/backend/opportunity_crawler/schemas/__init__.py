"""
Pydantic schemas for store payloads, run summaries and API responses.
"""

from opportunity_crawler.schemas.common import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
)
from opportunity_crawler.schemas.crawl import (
    CronRunResponse,
    DiscoverSummary,
    ReaperSummary,
    VerifySummary,
)
from opportunity_crawler.schemas.crawl_source import CrawlSourceResponse
from opportunity_crawler.schemas.fetch_log import FetchLogCreate
from opportunity_crawler.schemas.opportunity import (
    OpportunityExtractedFields,
    OpportunityResponse,
    OpportunityUpsert,
)

__all__ = [
    # Common
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    # Runs
    "CronRunResponse",
    "DiscoverSummary",
    "ReaperSummary",
    "VerifySummary",
    # Crawl Source
    "CrawlSourceResponse",
    # Fetch Log
    "FetchLogCreate",
    # Opportunity
    "OpportunityExtractedFields",
    "OpportunityResponse",
    "OpportunityUpsert",
]
