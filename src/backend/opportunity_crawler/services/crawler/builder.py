"""
Opportunity builder: turns fetched HTML into a BuiltOpportunity.
"""

from collections.abc import Iterable

from opportunity_crawler.services.crawler.content import (
    CONTENT_HASH_CHARS,
    compute_content_hash,
    extract_h1,
    extract_text,
)
from opportunity_crawler.services.crawler.extractors import (
    FieldExtractor,
    PageContent,
    default_extractors,
    take_words,
)
from opportunity_crawler.services.crawler.models import BuiltOpportunity

TITLE_WORDS = 10
SUMMARY_WORDS = 15
DEFAULT_TITLE = "Opportunity"
DEFAULT_SUMMARY = "See source for details."

CORE_FIELDS = ("deadline", "funding", "international", "start_term", "application_url", "institution")


class OpportunityBuilder:
    """
    Runs a set of named field extractors over a page.

    Extractors passed in replace the default extractor of the same name;
    extractors with any other name are run too and land in `extras`.
    """

    def __init__(self, extractors: Iterable[FieldExtractor] | None = None):
        self.extractors: dict[str, FieldExtractor] = {e.name: e for e in default_extractors()}
        for extractor in extractors or ():
            self.extractors[extractor.name] = extractor

    def build(
        self,
        html: str,
        canonical_url: str,
        etag: str | None = None,
        last_modified: str | None = None,
    ) -> BuiltOpportunity:
        h1 = extract_h1(html)
        text = extract_text(html)
        page = PageContent(url=canonical_url, html=html, text=text, h1=h1)

        fields = {name: extractor.extract(page) for name, extractor in self.extractors.items()}
        core = f"{h1 or ''}\n{text}".strip()

        return BuiltOpportunity(
            content_hash=compute_content_hash(core[:CONTENT_HASH_CHARS]),
            title_clean=h1 or take_words(text, TITLE_WORDS) or DEFAULT_TITLE,
            summary=take_words(text, SUMMARY_WORDS) or DEFAULT_SUMMARY,
            deadline=fields["deadline"],
            funding=fields["funding"],
            international=fields["international"],
            start_term=fields["start_term"],
            application_url=fields["application_url"],
            institution=fields["institution"],
            page_last_modified=last_modified,
            etag=etag,
            extras={name: value for name, value in fields.items() if name not in CORE_FIELDS},
        )


def build_opportunity_from_html(
    html: str,
    canonical_url: str,
    etag: str | None = None,
    last_modified: str | None = None,
) -> BuiltOpportunity:
    """Build with the default extractor set."""
    return OpportunityBuilder().build(html, canonical_url, etag=etag, last_modified=last_modified)
