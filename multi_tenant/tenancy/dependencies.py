"""FastAPI dependency factories for reading the current tenant in route handlers."""

from collections.abc import Awaitable, Callable
from typing import Any

from multi_tenant.exceptions import UnauthorizedException
from multi_tenant.tenancy.tenant import TenantType


def current_tenant(tenant_type: TenantType) -> Callable[[], Awaitable[Any]]:
    """Dependency returning ``tenant_type.current`` (entity/None or list)."""

    async def _current() -> Any:
        return tenant_type.current

    return _current


def require_tenant(tenant_type: TenantType) -> Callable[[], Awaitable[Any]]:
    """Dependency that guarantees at least one tenant is current.

    Raises UnauthorizedException otherwise, e.g. on a global (bypass) request.
    """

    async def _require() -> Any:
        if not tenant_type.is_current:
            raise UnauthorizedException(f"{tenant_type.model.__name__} context is required.")
        return tenant_type.current

    return _require
