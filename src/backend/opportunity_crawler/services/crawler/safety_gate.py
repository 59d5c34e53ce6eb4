"""
Safety gate: decides the publication status of a freshly built opportunity.
"""

from datetime import date, datetime, timezone

from opportunity_crawler.models.opportunity import Confidence, OpportunityStatus
from opportunity_crawler.services.crawler.models import GateDecision


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def is_expired(deadline_date: date | None, confidence: Confidence, today: date | None = None) -> bool:
    """A LOW-confidence deadline never expires an opportunity."""
    if deadline_date is None or confidence == Confidence.LOW:
        return False
    return deadline_date < (today or utc_today())


def safety_gate(
    blocked: bool,
    login_wall: bool,
    application_url: str | None,
    deadline_date: date | None,
    deadline_confidence: Confidence,
    today: date | None = None,
) -> GateDecision:
    if blocked:
        return GateDecision(OpportunityStatus.BLOCKED, "blocked")
    if login_wall:
        return GateDecision(OpportunityStatus.BLOCKED, "login_wall")
    if not application_url:
        return GateDecision(OpportunityStatus.NEEDS_REVIEW, "missing_application_url")
    if is_expired(deadline_date, deadline_confidence, today):
        return GateDecision(OpportunityStatus.EXPIRED, "expired_deadline")
    return GateDecision(OpportunityStatus.ACTIVE, None)
