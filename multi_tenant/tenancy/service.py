"""Helpers for running a unit of work inside (or outside) a tenant scope."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from multi_tenant.tenancy.constants import SKIP_TENANT_SCOPE
from multi_tenant.tenancy.tenant import TenantType

T = TypeVar("T")


async def with_tenant_context(
    session: AsyncSession,
    tenant_type: TenantType,
    value: Any,
    callback: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Execute a callback with ``value`` (entity or identifier) as the current tenant.

    Args:
        session: The async database session, used for the lookup and passed on.
        tenant_type: The tenant type to scope.
        value: Entity, identifier, or (multiple mode) a sequence of them.
        callback: An async callable that receives the session and returns a result.

    Returns:
        The result of the callback.
    """
    async with tenant_type.using(session, value):
        return await callback(session)


async def unscoped_query(
    session: AsyncSession,
    callback: Callable[[AsyncSession], Awaitable[T]],
) -> T:
    """Execute a callback with tenant scoping disabled for the whole session.

    Reads return every tenant's rows and flushes skip assignment and
    validation. Use only for administrative or cross-tenant work.
    """
    previous = session.info.get(SKIP_TENANT_SCOPE, False)
    session.info[SKIP_TENANT_SCOPE] = True
    try:
        return await callback(session)
    finally:
        session.info[SKIP_TENANT_SCOPE] = previous
