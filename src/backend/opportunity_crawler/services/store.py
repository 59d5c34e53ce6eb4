"""
Storage seam for the crawler workflows.

Workflows only see the abstract OpportunityStore. The SQLAlchemy
implementation keeps one short transaction per call so a failure on one
page never rolls back work already done for others.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import Select, Update, func, select, update
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from opportunity_crawler.core.exceptions import DatabaseException, SourceRegistryException
from opportunity_crawler.core.logging import get_logger
from opportunity_crawler.models import CrawlSource, FetchLog, Opportunity, OpportunityStatus, ProgramType
from opportunity_crawler.schemas import (
    CrawlSourceResponse,
    FetchLogCreate,
    OpportunityResponse,
    OpportunityUpsert,
)

logger = get_logger(__name__)

UPSERT_KEY = ("canonical_url", "program_type")
REAPABLE_STATUSES = (OpportunityStatus.ACTIVE, OpportunityStatus.NEEDS_REVIEW)


class OpportunityStore(ABC):
    """Keyed read / update / insert operations the workflows rely on."""

    @abstractmethod
    async def list_active_sources(self, program_type: ProgramType | None = None) -> list[CrawlSourceResponse]:
        """Active registry rows, optionally for one program type."""

    @abstractmethod
    async def upsert_opportunity(self, payload: OpportunityUpsert) -> None:
        """Insert or fully overwrite the row keyed by (canonical_url, program_type)."""

    @abstractmethod
    async def list_opportunities_to_verify(
        self,
        statuses: list[OpportunityStatus],
        program_type: ProgramType | None = None,
        limit: int = 25,
    ) -> list[OpportunityResponse]:
        """Rows in the given statuses, least recently verified first."""

    @abstractmethod
    async def update_opportunity(self, opportunity_id: UUID, values: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def insert_fetch_log(self, entry: FetchLogCreate) -> None:
        ...

    @abstractmethod
    async def expire_past_deadlines(self, today: date) -> int:
        """Expire ACTIVE / NEEDS_REVIEW rows whose deadline is before today; returns the count."""


# Statement builders

def build_active_sources_query(program_type: ProgramType | None = None) -> Select:
    query = select(CrawlSource).where(CrawlSource.active.is_(True))
    if program_type is not None:
        query = query.where(CrawlSource.program_type == program_type)
    return query.order_by(CrawlSource.created_at)


def build_upsert_statement(payload: OpportunityUpsert) -> Insert:
    values = payload.model_dump()
    stmt = insert(Opportunity).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=list(UPSERT_KEY),
        set_={
            **{key: stmt.excluded[key] for key in values if key not in UPSERT_KEY},
            "updated_at": func.now(),
        },
    )


def build_verify_query(
    statuses: list[OpportunityStatus],
    program_type: ProgramType | None = None,
    limit: int = 25,
) -> Select:
    query = select(Opportunity).where(Opportunity.status.in_(statuses))
    if program_type is not None:
        query = query.where(Opportunity.program_type == program_type)
    return query.order_by(Opportunity.last_verified_at.asc()).limit(limit)


def build_expire_statement(today: date) -> Update:
    return (
        update(Opportunity)
        .where(
            Opportunity.deadline_date.is_not(None),
            Opportunity.deadline_date < today,
            Opportunity.status.in_(REAPABLE_STATUSES),
        )
        .values(status=OpportunityStatus.EXPIRED, status_reason="deadline_passed")
        .returning(Opportunity.id)
    )


class SqlAlchemyOpportunityStore(OpportunityStore):
    """OpportunityStore backed by PostgreSQL through async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Store operation failed", operation=operation, error=str(e))
                raise DatabaseException(f"{operation} failed", details={"error": str(e)}) from e

    async def list_active_sources(self, program_type: ProgramType | None = None) -> list[CrawlSourceResponse]:
        try:
            async with self._transaction("list_active_sources") as session:
                result = await session.execute(build_active_sources_query(program_type))
                return [CrawlSourceResponse.model_validate(row) for row in result.scalars().all()]
        except DatabaseException as e:
            raise SourceRegistryException(e.details.get("error", e.message)) from e

    async def upsert_opportunity(self, payload: OpportunityUpsert) -> None:
        async with self._transaction("upsert_opportunity") as session:
            await session.execute(build_upsert_statement(payload))

    async def list_opportunities_to_verify(
        self,
        statuses: list[OpportunityStatus],
        program_type: ProgramType | None = None,
        limit: int = 25,
    ) -> list[OpportunityResponse]:
        async with self._transaction("list_opportunities_to_verify") as session:
            result = await session.execute(build_verify_query(statuses, program_type, limit))
            return [OpportunityResponse.model_validate(row) for row in result.scalars().all()]

    async def update_opportunity(self, opportunity_id: UUID, values: dict[str, Any]) -> None:
        async with self._transaction("update_opportunity") as session:
            await session.execute(
                update(Opportunity)
                .where(Opportunity.id == opportunity_id)
                .values(**values, updated_at=func.now())
            )

    async def insert_fetch_log(self, entry: FetchLogCreate) -> None:
        async with self._transaction("insert_fetch_log") as session:
            session.add(FetchLog(**entry.model_dump()))

    async def expire_past_deadlines(self, today: date) -> int:
        async with self._transaction("expire_past_deadlines") as session:
            result = await session.execute(build_expire_statement(today))
            return len(result.scalars().all())
