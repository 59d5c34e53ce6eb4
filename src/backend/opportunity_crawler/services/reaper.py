"""
Reaper: expires stored opportunities whose deadline has passed.
"""

from datetime import date

from opportunity_crawler.core.logging import LoggerMixin
from opportunity_crawler.schemas import ReaperSummary
from opportunity_crawler.services.crawler.safety_gate import utc_today
from opportunity_crawler.services.store import OpportunityStore


class Reaper(LoggerMixin):

    def __init__(self, store: OpportunityStore):
        self.store = store

    async def run(self, today: date | None = None) -> ReaperSummary:
        today = today or utc_today()
        expired_count = await self.store.expire_past_deadlines(today)
        self.logger.info("Reaper finished", today=today.isoformat(), expired_count=expired_count)
        return ReaperSummary(expired_count=expired_count)
