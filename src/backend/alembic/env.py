"""
Alembic environment for the crawler schema.

Migrations run over psycopg2; the application itself talks to the same
database through asyncpg.
"""

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import make_url

# alembic is invoked from src/backend, next to the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from opportunity_crawler.core.config import get_settings
from opportunity_crawler.db.base import Base
from opportunity_crawler.models import CrawlSource, FetchLog, Opportunity  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def sync_database_url() -> str:
    """DATABASE_URL with its driver swapped for psycopg2."""
    database_url = get_settings().database_url
    if database_url is None:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    url = make_url(str(database_url)).set(drivername="postgresql+psycopg2")
    return url.render_as_string(hide_password=False)


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=sync_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(sync_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
