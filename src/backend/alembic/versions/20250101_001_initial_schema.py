"""Initial schema - sources, opportunities and fetch logs

Revision ID: 001_initial
Revises: 
Create Date: 2025-01-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROGRAM_TYPES = ('VISITING_RESEARCH', 'INTERNSHIP', 'PHD')
CONFIDENCES = ('HIGH', 'MEDIUM', 'LOW')
FUNDING_TYPES = ('FUNDED', 'PARTIALLY_FUNDED', 'EXTERNAL_FUNDING_OK', 'SELF_FUNDED_OK', 'UNKNOWN')
TRI_STATES = ('YES', 'NO', 'UNKNOWN')
OPPORTUNITY_STATUSES = ('ACTIVE', 'NEEDS_REVIEW', 'BLOCKED', 'EXPIRED')
SOURCE_STRATEGIES = ('GOOGLE_SEED', 'CURATED', 'OPPORTUNISTIC')
FETCH_ACTIONS = ('DISCOVER', 'VERIFY')
FETCH_STATUSES = ('OK', 'NOT_MODIFIED', 'BLOCKED', 'ERROR')


def _enum(values: tuple[str, ...], name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, create_type=False)


def upgrade() -> None:
    # Create ENUM types
    for name, values in (
        ('programtype', PROGRAM_TYPES),
        ('confidence', CONFIDENCES),
        ('fundingtype', FUNDING_TYPES),
        ('tristate', TRI_STATES),
        ('opportunitystatus', OPPORTUNITY_STATUSES),
        ('sourcestrategy', SOURCE_STRATEGIES),
        ('fetchaction', FETCH_ACTIONS),
        ('fetchstatus', FETCH_STATUSES),
    ):
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels})")

    # Create crawl_sources table
    op.create_table(
        'crawl_sources',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('program_type', _enum(PROGRAM_TYPES, 'programtype'), nullable=False),
        sa.Column('strategy', _enum(SOURCE_STRATEGIES, 'sourcestrategy'), nullable=False),
        sa.Column('seed_key', sa.String(255), nullable=True),
        sa.Column('base_url', sa.String(1000), nullable=False),
        sa.Column('allow_paths', postgresql.ARRAY(sa.String(500)), nullable=False, server_default='{}'),
        sa.Column('block_paths', postgresql.ARRAY(sa.String(500)), nullable=False, server_default='{}'),
        sa.Column('max_depth', sa.Integer, nullable=False, server_default='1'),
        sa.Column('active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('respect_robots', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('max_requests_per_run', sa.Integer, nullable=False, server_default='20'),
        sa.Column('min_delay_ms', sa.Integer, nullable=False, server_default='750'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('ix_crawl_sources_program_type', 'crawl_sources', ['program_type'])
    op.create_index('ix_crawl_sources_active', 'crawl_sources', ['active'])

    # Create opportunities table
    op.create_table(
        'opportunities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('program_type', _enum(PROGRAM_TYPES, 'programtype'), nullable=False),
        sa.Column('institution_name', sa.String(255), nullable=False),
        sa.Column('title_clean', sa.String(500), nullable=False),
        sa.Column('summary', sa.Text, nullable=False),
        sa.Column('funding_type', _enum(FUNDING_TYPES, 'fundingtype'), nullable=False, server_default='UNKNOWN'),
        sa.Column('funding_confidence', _enum(CONFIDENCES, 'confidence'), nullable=False, server_default='LOW'),
        sa.Column('funding_evidence', sa.Text, nullable=True),
        sa.Column('international_allowed', _enum(TRI_STATES, 'tristate'), nullable=False, server_default='UNKNOWN'),
        sa.Column('eligibility_confidence', _enum(CONFIDENCES, 'confidence'), nullable=False, server_default='LOW'),
        sa.Column('eligibility_evidence', sa.Text, nullable=True),
        sa.Column('start_term', sa.String(50), nullable=True),
        sa.Column('deadline_date', sa.Date, nullable=True),
        sa.Column('deadline_confidence', _enum(CONFIDENCES, 'confidence'), nullable=False, server_default='LOW'),
        sa.Column('deadline_evidence', sa.Text, nullable=True),
        sa.Column('application_url', sa.String(2000), nullable=False),
        sa.Column('source_url', sa.String(2000), nullable=False),
        sa.Column('canonical_url', sa.String(2000), nullable=False),
        sa.Column('last_verified_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('freshness_score', sa.Integer, nullable=False, server_default='0'),
        sa.Column('status', _enum(OPPORTUNITY_STATUSES, 'opportunitystatus'), nullable=False, server_default='ACTIVE'),
        sa.Column('status_reason', sa.String(100), nullable=True),
        sa.Column('content_hash', sa.String(64), nullable=False),
        sa.Column('page_last_modified', sa.String(100), nullable=True),
        sa.Column('etag', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('canonical_url', 'program_type', name='uq_opportunities_canonical_url_program_type'),
        sa.CheckConstraint('freshness_score >= 0 AND freshness_score <= 100', name='ck_opportunities_freshness_range'),
    )
    op.create_index('ix_opportunities_program_type', 'opportunities', ['program_type'])
    op.create_index('ix_opportunities_institution_name', 'opportunities', ['institution_name'])
    op.create_index('ix_opportunities_deadline_date', 'opportunities', ['deadline_date'])
    op.create_index('ix_opportunities_last_verified_at', 'opportunities', ['last_verified_at'])
    op.create_index('ix_opportunities_status', 'opportunities', ['status'])

    # Create fetch_logs table
    op.create_table(
        'fetch_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('action', _enum(FETCH_ACTIONS, 'fetchaction'), nullable=False),
        sa.Column('status', _enum(FETCH_STATUSES, 'fetchstatus'), nullable=False),
        sa.Column('program_type', _enum(PROGRAM_TYPES, 'programtype'), nullable=True),
        sa.Column('source_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('crawl_sources.id', ondelete='SET NULL'), nullable=True),
        sa.Column('canonical_url', sa.String(2000), nullable=True),
        sa.Column('fetched_url', sa.String(2000), nullable=False),
        sa.Column('fetched_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('http_status', sa.Integer, nullable=True),
        sa.Column('elapsed_ms', sa.Integer, nullable=True),
        sa.Column('response_bytes', sa.Integer, nullable=True),
        sa.Column('etag', sa.String(255), nullable=True),
        sa.Column('page_last_modified', sa.String(100), nullable=True),
        sa.Column('content_hash', sa.String(64), nullable=True),
        sa.Column('blocked_reason', sa.String(100), nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
    )
    op.create_index('ix_fetch_logs_source_id', 'fetch_logs', ['source_id'])
    op.create_index('ix_fetch_logs_canonical_url', 'fetch_logs', ['canonical_url'])
    op.create_index('ix_fetch_logs_fetched_at', 'fetch_logs', ['fetched_at'])


def downgrade() -> None:
    op.drop_table('fetch_logs')
    op.drop_table('opportunities')
    op.drop_table('crawl_sources')

    for name in (
        'fetchstatus',
        'fetchaction',
        'sourcestrategy',
        'opportunitystatus',
        'tristate',
        'fundingtype',
        'confidence',
        'programtype',
    ):
        op.execute(f"DROP TYPE IF EXISTS {name}")
