from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from multi_tenant.database.engine import async_session
from multi_tenant.tenancy.constants import SKIP_TENANT_SCOPE


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    unscoped: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Open a session that commits on success and rolls back on any error.

    Tenant ownership failures raised from flush roll the whole unit of work
    back. ``unscoped`` disables tenant scoping for the session, as needed when
    looking tenants up before any tenant is current.
    """
    async with (factory or async_session)() as session:
        if unscoped:
            session.info[SKIP_TENANT_SCOPE] = True
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a session scoped to the request's tenant."""
    async with session_scope() as session:
        yield session
