"""
Current-tenant storage.

Each tenant type owns one ``ContextVar`` slot, keyed by its ``context_key``.
Context variables follow the logical task rather than the OS thread, so two
concurrent requests (threads or asyncio tasks) never see each other's tenants,
and values survive ``await`` suspension points.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from multi_tenant.tenancy.tenant import TenantType

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMPTY: tuple = ()


class TenantContext:
    """Holder of the current tenant tuple for every registered tenant type."""

    def __init__(self) -> None:
        self._vars: dict[str, ContextVar[tuple]] = {}

    def register(self, context_key: str) -> None:
        if context_key not in self._vars:
            self._vars[context_key] = ContextVar(context_key, default=EMPTY)

    def _var(self, tenant_type: TenantType) -> ContextVar[tuple]:
        return self._vars[tenant_type.context_key]

    def get(self, tenant_type: TenantType) -> tuple:
        """Return the current tenants, or an empty tuple when none are set."""
        return self._var(tenant_type).get()

    def set(self, tenant_type: TenantType, entities: Iterable[Any]) -> Token:
        """Replace the current tenants for the running context only."""
        return self._var(tenant_type).set(tuple(entities))

    def reset(self, tenant_type: TenantType, token: Token) -> None:
        self._var(tenant_type).reset(token)

    def clear(self, tenant_type: TenantType) -> None:
        self._var(tenant_type).set(EMPTY)

    @contextmanager
    def scoped(self, tenant_type: TenantType, entities: Iterable[Any]) -> Iterator[tuple]:
        """Make ``entities`` current for the body, restoring the prior value on every exit path."""
        token = self.set(tenant_type, entities)
        try:
            yield self.get(tenant_type)
        finally:
            self.reset(tenant_type, token)

    def for_each(
        self,
        tenant_type: TenantType,
        entities: Iterable[Any],
        body: Callable[[Any], T],
    ) -> list[T]:
        """Run ``body`` once per tenant with exactly that tenant current."""
        results = []
        for entity in entities:
            with self.scoped(tenant_type, (entity,)):
                results.append(body(entity))
        return results

    async def for_each_async(
        self,
        tenant_type: TenantType,
        entities: Iterable[Any],
        body: Callable[[Any], Awaitable[T]],
    ) -> list[T]:
        results = []
        for entity in entities:
            with self.scoped(tenant_type, (entity,)):
                results.append(await body(entity))
        return results


tenant_context = TenantContext()
