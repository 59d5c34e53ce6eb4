"""
Database base class, engine and session factory.
"""

from opportunity_crawler.db.base import Base
from opportunity_crawler.db.session import check_database, close_db, get_engine, get_session_factory

__all__ = ["Base", "check_database", "close_db", "get_engine", "get_session_factory"]
