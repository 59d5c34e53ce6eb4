"""
Top-level API router.
"""

from fastapi import APIRouter

from opportunity_crawler.api.endpoints import cron

api_router = APIRouter()
api_router.include_router(cron.router, prefix="/cron", tags=["Cron Triggers"])
