from datetime import date, datetime, timezone

from sqlalchemy.dialects import postgresql

from opportunity_crawler.models import OpportunityStatus, ProgramType
from opportunity_crawler.schemas import OpportunityUpsert
from opportunity_crawler.services.store import (
    build_active_sources_query,
    build_expire_statement,
    build_upsert_statement,
    build_verify_query,
)


def compile_pg(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def upsert_payload() -> OpportunityUpsert:
    return OpportunityUpsert(
        program_type=ProgramType.PHD,
        institution_name="EXAMPLE",
        title_clean="Funded PhD in X",
        summary="Funded PhD in X",
        application_url="https://example.edu/apply",
        source_url="https://example.edu",
        canonical_url="https://example.edu/phd",
        last_verified_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        freshness_score=80,
        status=OpportunityStatus.ACTIVE,
        content_hash="a" * 64,
    )


def test_upsert_conflicts_on_canonical_url_and_program_type():
    sql = compile_pg(build_upsert_statement(upsert_payload()))

    assert "INSERT INTO opportunities" in sql
    assert "ON CONFLICT (canonical_url, program_type) DO UPDATE" in sql
    assert "title_clean = excluded.title_clean" in sql
    assert "updated_at = now()" in sql
    assert "canonical_url = excluded.canonical_url" not in sql


def test_verify_query_orders_oldest_first():
    sql = compile_pg(build_verify_query([OpportunityStatus.ACTIVE], ProgramType.PHD, 10))

    assert "ORDER BY opportunities.last_verified_at ASC" in sql
    assert "opportunities.program_type = " in sql
    assert "LIMIT" in sql


def test_expire_statement_targets_live_rows_with_past_deadline():
    sql = compile_pg(build_expire_statement(date(2026, 6, 1)))

    assert sql.startswith("UPDATE opportunities SET")
    assert "opportunities.deadline_date IS NOT NULL" in sql
    assert "opportunities.deadline_date < " in sql
    assert "opportunities.status IN" in sql
    assert "RETURNING opportunities.id" in sql


def test_active_sources_query():
    sql = compile_pg(build_active_sources_query())
    assert "crawl_sources.active IS true" in sql
    assert "program_type" not in sql.split("WHERE", 1)[1]

    filtered = compile_pg(build_active_sources_query(ProgramType.INTERNSHIP))
    assert "crawl_sources.program_type = " in filtered
