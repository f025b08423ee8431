"""Pytest fixtures for the multi_tenant test suite."""

from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from multi_tenant.tenancy.context import tenant_context
from tests.models import TENANT_TYPES, Base, MultiBase


@pytest.fixture(autouse=True)
def clear_tenants() -> Iterator[None]:
    """Tenant context set by synchronous tests must not leak into the next test."""
    for tenant_type in TENANT_TYPES:
        tenant_context.clear(tenant_type)
    yield
    for tenant_type in TENANT_TYPES:
        tenant_context.clear(tenant_type)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(MultiBase.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as db:
        yield db
