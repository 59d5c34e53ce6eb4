"""
Cron trigger endpoints.

Each route runs one workflow to completion and returns its summary. A
scheduler calls them with GET or POST; when CRON_SECRET is configured the
caller must present it in the x-cron-secret header.
"""

from collections.abc import AsyncIterator
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, Query
from structlog.contextvars import bound_contextvars

from opportunity_crawler.core.config import Settings, get_settings
from opportunity_crawler.core.exceptions import UnauthorizedException
from opportunity_crawler.core.logging import get_logger
from opportunity_crawler.db.session import get_session_factory
from opportunity_crawler.models import ProgramType
from opportunity_crawler.schemas import CronRunResponse, ErrorResponse
from opportunity_crawler.services.crawler.fetcher import FetchClient
from opportunity_crawler.services.discover import DiscoverWorkflow
from opportunity_crawler.services.reaper import Reaper
from opportunity_crawler.services.store import OpportunityStore, SqlAlchemyOpportunityStore
from opportunity_crawler.services.verify import VerifyWorkflow

logger = get_logger(__name__)
router = APIRouter()


def get_store() -> OpportunityStore:
    return SqlAlchemyOpportunityStore(get_session_factory())


async def get_fetch_client() -> AsyncIterator[FetchClient]:
    """A fresh fetcher per run, so politeness and robots state never leak between runs."""
    async with FetchClient.from_settings() as fetcher:
        yield fetcher


def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    if settings.cron_secret and x_cron_secret != settings.cron_secret:
        raise UnauthorizedException()


def parse_program_type(raw: str | None) -> ProgramType | None:
    """Unknown program types mean no filter rather than an error."""
    if not raw:
        return None
    try:
        return ProgramType(raw)
    except ValueError:
        logger.warning("Ignoring unknown program_type", program_type=raw)
        return None


def parse_limit(raw: str | None, settings: Settings) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return min(max(value, 1), settings.verify_max_limit)


Store = Annotated[OpportunityStore, Depends(get_store)]
Fetcher = Annotated[FetchClient, Depends(get_fetch_client)]
CronSettings = Annotated[Settings, Depends(get_settings)]

ERROR_RESPONSES: dict[int | str, dict] = {
    401: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.api_route(
    "/discover",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_discover(
    store: Store,
    fetcher: Fetcher,
    settings: CronSettings,
    program_type: str | None = Query(default=None),
) -> CronRunResponse:
    """Crawl every active source and upsert the opportunities found."""
    workflow = DiscoverWorkflow(store, fetcher, settings=settings)
    with bound_contextvars(run="discover", run_id=uuid4().hex):
        summary = await workflow.run(parse_program_type(program_type))
    return CronRunResponse(result=summary.model_dump())


@router.api_route(
    "/verify",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_verify(
    store: Store,
    fetcher: Fetcher,
    settings: CronSettings,
    program_type: str | None = Query(default=None),
    limit: str | None = Query(default=None),
) -> CronRunResponse:
    """Re-check the least recently verified opportunities."""
    workflow = VerifyWorkflow(store, fetcher, settings=settings)
    with bound_contextvars(run="verify", run_id=uuid4().hex):
        summary = await workflow.run(parse_program_type(program_type), parse_limit(limit, settings))
    return CronRunResponse(result=summary.model_dump())


@router.api_route(
    "/reaper",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    responses=ERROR_RESPONSES,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_reaper(store: Store) -> CronRunResponse:
    """Expire opportunities whose deadline has passed."""
    with bound_contextvars(run="reaper", run_id=uuid4().hex):
        summary = await Reaper(store).run()
    return CronRunResponse(result=summary.model_dump())
