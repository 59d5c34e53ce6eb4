"""
Heuristic field extractors.

Each extractor is a small strategy object with a stable name that reads a
parsed page and returns an ExtractedField. Extraction never raises: when a
heuristic finds nothing it answers with LOW confidence.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any

from dateutil import parser as date_parser

from opportunity_crawler.models.opportunity import Confidence, FundingType, TriState
from opportunity_crawler.services.crawler.content import Anchor, extract_anchors
from opportunity_crawler.services.crawler.models import ExtractedField
from opportunity_crawler.services.crawler.policy import get_host

EVIDENCE_WORDS = 20


@dataclass(frozen=True)
class PageContent:
    """A fetched page in the forms extractors need."""
    url: str
    html: str
    text: str
    h1: str | None = None

    def anchors(self) -> list[Anchor]:
        return extract_anchors(self.html, self.url)


def take_words(text: str, max_words: int) -> str:
    return " ".join(text.split()[:max_words])


class FieldExtractor(ABC):
    """Strategy for deriving one opportunity field from a page."""

    name: str

    @abstractmethod
    def extract(self, page: PageContent) -> ExtractedField[Any]:
        ...


# Deadline

_ISO_DATE_RE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_DEADLINE_KEYWORD_RE = re.compile(
    r"(deadline|closing date|apply by|applications close|application deadline).{0,160}",
    re.IGNORECASE,
)
_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)
_WRITTEN_DATE_RE = re.compile(
    rf"\b{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}}\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTH}\s+\d{{4}}\b"
    r"|\b\d{4}/\d{1,2}/\d{1,2}\b",
    re.IGNORECASE,
)


def find_iso_date(text: str) -> date | None:
    """First YYYY-MM-DD token that is a real calendar date."""
    for match in _ISO_DATE_RE.finditer(text):
        try:
            return date.fromisoformat(match.group(1))
        except ValueError:
            continue
    return None


def parse_written_date(text: str) -> date | None:
    """First date written with a month name (or as YYYY/MM/DD) in text."""
    for match in _WRITTEN_DATE_RE.finditer(text):
        try:
            return date_parser.parse(match.group(0), fuzzy=True).date()
        except (ValueError, OverflowError):
            continue
    return None


class DeadlineExtractor(FieldExtractor):
    name = "deadline"

    def extract(self, page: PageContent) -> ExtractedField[date | None]:
        iso = find_iso_date(page.text)
        if iso is not None:
            return ExtractedField(iso, Confidence.HIGH, f"Deadline {iso.isoformat()}")

        match = _DEADLINE_KEYWORD_RE.search(page.text)
        if match is None:
            return ExtractedField(None, Confidence.LOW, None)

        window = match.group(0)
        evidence = take_words(window, EVIDENCE_WORDS)
        parsed = parse_written_date(window)
        if parsed is None:
            return ExtractedField(None, Confidence.LOW, evidence)
        return ExtractedField(parsed, Confidence.MEDIUM, evidence)


# Funding

_FUNDING_RULES: list[tuple[re.Pattern[str], FundingType, str]] = [
    (
        re.compile(r"fully funded|full funding|tuition waiver|stipend", re.IGNORECASE),
        FundingType.FUNDED,
        "Fully funded / stipend",
    ),
    (
        re.compile(r"partially funded|partial funding", re.IGNORECASE),
        FundingType.PARTIALLY_FUNDED,
        "Partially funded",
    ),
    (
        re.compile(r"external funding|bring your own funding|tri-council|nserc|sshrc|cihr", re.IGNORECASE),
        FundingType.EXTERNAL_FUNDING_OK,
        "External funding accepted",
    ),
    (
        re.compile(r"self-funded|self funded", re.IGNORECASE),
        FundingType.SELF_FUNDED_OK,
        "Self-funded possible",
    ),
]


class FundingTypeExtractor(FieldExtractor):
    name = "funding"

    def extract(self, page: PageContent) -> ExtractedField[FundingType]:
        for pattern, funding_type, evidence in _FUNDING_RULES:
            if pattern.search(page.text):
                return ExtractedField(funding_type, Confidence.MEDIUM, evidence)
        return ExtractedField(FundingType.UNKNOWN, Confidence.LOW, None)


# International eligibility

_INTERNATIONAL_YES_RE = re.compile(
    r"international applicants (are )?welcome|open to international applicants",
    re.IGNORECASE,
)
_INTERNATIONAL_NO_RE = re.compile(
    r"canadian citizens|permanent residents only|must be eligible to work in canada",
    re.IGNORECASE,
)


class InternationalEligibilityExtractor(FieldExtractor):
    name = "international"

    def extract(self, page: PageContent) -> ExtractedField[TriState]:
        if _INTERNATIONAL_YES_RE.search(page.text):
            return ExtractedField(TriState.YES, Confidence.MEDIUM, "International applicants welcome")
        if _INTERNATIONAL_NO_RE.search(page.text):
            return ExtractedField(TriState.NO, Confidence.MEDIUM, "Citizens/PR only")
        return ExtractedField(TriState.UNKNOWN, Confidence.LOW, None)


# Start term

_START_TERM_RE = re.compile(r"\b(Fall|Winter|Summer)\s+(20\d{2})\b", re.IGNORECASE)


class StartTermExtractor(FieldExtractor):
    name = "start_term"

    def extract(self, page: PageContent) -> ExtractedField[str | None]:
        match = _START_TERM_RE.search(page.text)
        if match is None:
            return ExtractedField(None, Confidence.LOW, None)
        term = f"{match.group(1).capitalize()} {match.group(2)}"
        return ExtractedField(term, Confidence.MEDIUM, match.group(0))


# Application URL

class ApplicationUrlExtractor(FieldExtractor):
    name = "application_url"

    def extract(self, page: PageContent) -> ExtractedField[str | None]:
        anchors = page.anchors()
        for anchor in anchors:
            text = anchor.text.lower()
            if "apply" in text or "application" in text:
                return ExtractedField(anchor.href, Confidence.MEDIUM, anchor.text or None)
        if anchors:
            return ExtractedField(anchors[0].href, Confidence.LOW, anchors[0].text or None)
        return ExtractedField(None, Confidence.LOW, None)


# Institution

# Second-level labels that sit under a country code (e.g. ox.ac.uk, unimelb.edu.au)
_SECOND_LEVEL_LABELS = frozenset({"ac", "co", "com", "edu", "gov", "net", "org"})


def infer_institution(url: str) -> str | None:
    """Registrable-domain label of the URL's host, uppercased."""
    host = get_host(url)
    if host is None:
        return None
    labels = host.split(".")
    if len(labels) >= 3 and len(labels[-1]) == 2 and labels[-2] in _SECOND_LEVEL_LABELS:
        return labels[-3].upper()
    if len(labels) >= 2:
        return labels[-2].upper()
    return host.upper()


class InstitutionExtractor(FieldExtractor):
    name = "institution"

    def extract(self, page: PageContent) -> ExtractedField[str]:
        institution = infer_institution(page.url)
        if institution is None:
            return ExtractedField("TBA", Confidence.LOW, None)
        return ExtractedField(institution, Confidence.LOW, get_host(page.url))


def default_extractors() -> list[FieldExtractor]:
    return [
        DeadlineExtractor(),
        FundingTypeExtractor(),
        InternationalEligibilityExtractor(),
        StartTermExtractor(),
        ApplicationUrlExtractor(),
        InstitutionExtractor(),
    ]
