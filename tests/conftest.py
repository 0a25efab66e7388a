"""Test configuration and fixtures for resourceql."""

from dotenv import load_dotenv
import pytest
import asyncio
import os
import sys
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from resourceql import reset_config
from resourceql.core.compiler import clear_cache
from resourceql.query import set_current_query
from resourceql.sql.criteria import clear_searchable_cache
from tests.models import Base
import tests.resources  # noqa: F401  resource classes register for their models on import

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    """Set event loop policy for Windows compatibility."""
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield


@pytest.fixture(autouse=True)
def clean_state():
    """Reset process-wide settings and caches around every test."""
    reset_config()
    clear_cache()
    clear_searchable_cache()
    set_current_query(None)
    yield
    set_current_query(None)
    reset_config()
    clear_searchable_cache()


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function."""
    test_db_url = os.getenv('RESOURCEQL_TEST_DATABASE_URL')

    if test_db_url:
        if test_db_url.lower().startswith("mssql+aioodbc"):
            # aioodbc does not cope with pooled pre-ping in sync contexts
            engine = create_async_engine(test_db_url, echo=False, poolclass=NullPool)
        else:
            engine = create_async_engine(test_db_url, echo=False, pool_size=1, max_overflow=0)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = True
    else:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = False

    yield engine

    if is_external_db:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test function."""
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


# Import fixtures from fixtures module
from tests.fixtures import (  # noqa: E402,F401
    sample_organizations,
    sample_users,
    sample_posts,
    populated_db,
)
