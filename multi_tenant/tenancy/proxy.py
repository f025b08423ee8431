"""
Tenant proxies.

A proxy stands in for the tenant: owned rows point at the proxy, so every
tenant that reaches the same proxy shares them. Only shapes where one tenant
reaches at most one proxy are supported:

    License.clients (one-to-many)  <->  Client.license (many-to-one)
    License.client  (one-to-one)   <->  Client.license (many-to-one)
    License.client  (many-to-one)  <->  Client.license (one-to-one)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import RelationshipProperty, Session
from sqlalchemy.sql.elements import ColumnElement

from multi_tenant.exceptions import NilProxyError, TenantConfigurationError
from multi_tenant.tenancy.associations import find_relationship
from multi_tenant.tenancy.registry import registry
from multi_tenant.tenancy.strategies import unique

if TYPE_CHECKING:
    from multi_tenant.tenancy.tenant import TenantType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ProxyBinding:
    model: type
    relationship_name: str
    relationship: RelationshipProperty
    tenant_type: TenantType

    @property
    def identifier(self) -> str:
        return self.tenant_type.identifier

    def _reaches(self, criterion: ColumnElement[bool]) -> ColumnElement[bool]:
        attr = getattr(self.model, self.relationship_name)
        return attr.any(criterion) if self.relationship.uselist else attr.has(criterion)

    def key_subquery(self, attribute: str) -> Select:
        """``SELECT proxy.attribute`` for the proxies of every current tenant."""
        tenant_type = self.tenant_type
        pk = getattr(tenant_type.model, tenant_type.primary_key)
        criterion = tenant_type.strategy.filter_for(pk, unique(tenant_type.current_keys()))
        return select(getattr(self.model, attribute)).where(self._reaches(criterion))

    def proxy_statement(self, tenant: Any) -> Select:
        """The proxy row reached from ``tenant`` through the inverse association."""
        tenant_type = self.tenant_type
        pk = getattr(tenant_type.model, tenant_type.primary_key)
        stmt = select(self.model).where(self._reaches(pk == getattr(tenant, tenant_type.primary_key)))
        return stmt.execution_options(skip_tenant_scope=True)

    def _required(self, tenant: Any, proxy: Any) -> Any:
        if proxy is None:
            tenant_id = getattr(tenant, self.tenant_type.primary_key)
            logger.warning("No %s proxy for tenant %s#%s", self.model.__name__, self.tenant_type.model.__name__, tenant_id)
            raise NilProxyError(self.tenant_type.model, tenant_id)
        return proxy

    async def current(self, session: AsyncSession) -> Any:
        """Proxy of the current tenant(s), shaped like the tenant's ``current``.

        Single mode returns ``None`` when no tenant is current. A current tenant
        without a proxy row raises :class:`NilProxyError`.
        """
        proxies = []
        for tenant in self.tenant_type.current_tenants:
            proxy = (await session.scalars(self.proxy_statement(tenant))).first()
            proxies.append(self._required(tenant, proxy))
        return self.tenant_type.strategy.present(tuple(proxies))

    def current_sync(self, session: Session) -> Any:
        proxies = [
            self._required(tenant, session.scalars(self.proxy_statement(tenant)).first())
            for tenant in self.tenant_type.current_tenants
        ]
        return self.tenant_type.strategy.present(tuple(proxies))


def proxies_to_tenant(model: type, relationship_name: str) -> ProxyBinding:
    """Declare ``model`` as a proxy of the tenant reached through ``relationship_name``.

    The association and its inverse (``back_populates`` or ``backref``) must be
    declared first. Unsupported shapes fail here rather than at query time.
    """
    relationship = find_relationship(model, relationship_name, "proxies_to_tenant")
    target = relationship.mapper.class_
    tenant_type = registry.tenant_type(target)
    if tenant_type is None:
        raise TenantConfigurationError(
            f"`proxies_to_tenant :{relationship_name}`: {target.__name__} must use `acts_as_tenant`"
        )
    tenant_type.strategy.check_proxy_shape(relationship)

    binding = ProxyBinding(
        model=model,
        relationship_name=relationship_name,
        relationship=relationship,
        tenant_type=tenant_type,
    )
    registry.add_proxy(binding)
    logger.info("%s proxies to tenant %s via %s", model.__name__, target.__name__, relationship_name)
    return binding
