"""Declaring a mapped class as the tenant source."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import Token
from dataclasses import dataclass, field
from typing import Any, TypeVar

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from multi_tenant.config import settings
from multi_tenant.exceptions import TenantConfigurationError
from multi_tenant.tenancy.context import tenant_context
from multi_tenant.tenancy.registry import registry
from multi_tenant.tenancy.strategies import SINGLE, ScopingStrategy, strategy_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class TenantType:
    """Immutable tenancy record for one tenant class.

    Usage::

        clients = acts_as_tenant(Client, using="code")

        await clients.assign(session, "acme")   # look up by identifier
        clients.current                         # -> Client('acme') or None

        with clients.scoped(client):
            ...                                 # owned reads scoped to `client`
    """

    model: type
    identifier: str
    mode: str
    context_key: str
    strategy: ScopingStrategy = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", strategy_for(self.mode, self))

    @property
    def primary_key(self) -> str:
        mapper = inspect(self.model)
        return mapper.get_property_by_column(mapper.primary_key[0]).key

    # --- Reading current ---

    @property
    def current_tenants(self) -> tuple:
        """Current tenants as a tuple, regardless of mode."""
        return tenant_context.get(self)

    @property
    def current(self) -> Any:
        """Single mode: the current tenant or ``None``. Multiple mode: a list."""
        return self.strategy.present(self.current_tenants)

    @property
    def is_current(self) -> bool:
        return bool(self.current_tenants)

    def current_keys(self, attribute: str | None = None) -> list[Any]:
        """Values of ``attribute`` (default: primary key) across the current tenants."""
        attribute = attribute or self.primary_key
        return [getattr(tenant, attribute) for tenant in self.current_tenants]

    def identifier_of(self, value: Any) -> Any:
        return self.strategy.identifier_of(value)

    # --- Resolving ---

    async def resolve(self, session: AsyncSession, value: Any, *criteria: ColumnElement[bool]) -> Any:
        """Resolve an entity, identifier or (multiple mode) sequence thereof.

        A miss is not an error: single mode returns ``None``, multiple mode
        leaves the identifier out of the result.
        """
        return self.strategy.present(await self.strategy.resolve(session, value, *criteria))

    def resolve_sync(self, session: Session, value: Any, *criteria: ColumnElement[bool]) -> Any:
        return self.strategy.present(self.strategy.resolve_sync(session, value, *criteria))

    # --- Setting current ---

    def set_current(self, entities: Any) -> Token:
        """Set current from entities only; use :meth:`assign` for identifiers."""
        resolved, identifiers = self.strategy.split(entities)
        if identifiers:
            raise TypeError(
                f"{self.model.__name__} identifiers need a session; use `await assign(session, value)`"
            )
        return tenant_context.set(self, self.strategy.normalize(resolved))

    async def assign(self, session: AsyncSession, value: Any) -> Any:
        """Resolve ``value`` and make the result current. Returns the new ``current``."""
        entities = await self.strategy.resolve(session, value)
        tenant_context.set(self, entities)
        return self.strategy.present(entities)

    def assign_sync(self, session: Session, value: Any) -> Any:
        entities = self.strategy.resolve_sync(session, value)
        tenant_context.set(self, entities)
        return self.strategy.present(entities)

    def clear(self) -> None:
        tenant_context.clear(self)

    # --- Scoping blocks ---

    @contextmanager
    def scoped(self, entities: Any) -> Iterator[Any]:
        """Make ``entities`` current for the block, restoring the previous value afterwards."""
        resolved, identifiers = self.strategy.split(entities)
        if identifiers:
            raise TypeError(f"{self.model.__name__} identifiers need a session; use `using(session, value)`")
        with tenant_context.scoped(self, self.strategy.normalize(resolved)) as current:
            yield self.strategy.present(current)

    @asynccontextmanager
    async def using(self, session: AsyncSession, value: Any) -> AsyncIterator[Any]:
        """Resolve ``value`` (identifiers allowed) and scope the block to the result."""
        entities = await self.strategy.resolve(session, value)
        with tenant_context.scoped(self, entities) as current:
            yield self.strategy.present(current)

    @contextmanager
    def without(self) -> Iterator[None]:
        """Run the block with no current tenant (unscoped reads)."""
        with tenant_context.scoped(self, ()):
            yield

    def each(self, entities: Iterable[Any], body: Callable[[Any], T]) -> list[T]:
        return tenant_context.for_each(self, entities, body)

    async def with_each_tenant(
        self,
        session: AsyncSession,
        body: Callable[[Any], Awaitable[T]],
    ) -> list[T]:
        """Load every tenant row and run ``body`` once per tenant with it current."""
        tenants = (await session.scalars(select(self.model).execution_options(skip_tenant_scope=True))).all()
        return await tenant_context.for_each_async(self, tenants, body)


def acts_as_tenant(
    model: type,
    using: str | None = None,
    current: str = SINGLE,
) -> TenantType:
    """Use ``model`` as the tenant source.

    :param using: column holding the unique lookup identifier (code, subdomain, ...).
    :param current: ``"single"`` (default) or ``"multiple"`` current tenants.
    """
    using = using or settings.tenant_identifier_column
    mapper = inspect(model, raiseerr=False)
    if mapper is None:
        raise TenantConfigurationError(f"acts_as_tenant: {model!r} is not a mapped class")
    if using not in mapper.columns:
        raise TenantConfigurationError(f"acts_as_tenant: {model.__name__} has no column {using!r}")
    tenant_type = TenantType(
        model=model,
        identifier=using,
        mode=current,
        # Separate slot per class so unrelated tenant classes never collide.
        context_key=f"current_tenant_{id(model)}",
    )
    registry.add_tenant(tenant_type)
    tenant_context.register(tenant_type.context_key)
    logger.info("Registered tenant %s (using=%s, current=%s)", model.__name__, using, current)
    return tenant_type
