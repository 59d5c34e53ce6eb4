"""
Run summaries returned by the discover, verify and reaper workflows.
"""

from typing import Any

from pydantic import BaseModel, Field


class DiscoverSummary(BaseModel):
    """Totals for one discover run."""

    sources: int = 0
    urls_visited: int = 0
    accepted: int = 0
    blocked: int = 0
    expired: int = 0
    errors: int = 0


class VerifySummary(BaseModel):
    """Totals for one verify run."""

    checked: int = 0
    updated: int = 0
    unchanged: int = 0
    not_modified: int = 0
    blocked: int = 0
    errors: int = 0


class ReaperSummary(BaseModel):
    """Result of one reaper pass."""

    expired_count: int = 0


class CronRunResponse(BaseModel):
    """Envelope returned by the cron trigger endpoints."""

    ok: bool = True
    result: dict[str, Any] = Field(default_factory=dict)
