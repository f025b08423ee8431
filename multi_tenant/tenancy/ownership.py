"""Declaring that a mapped class belongs to a tenant through a foreign key."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import inspect
from sqlalchemy.orm import MANYTOONE, RelationshipProperty, Session
from sqlalchemy.orm.base import NO_VALUE
from sqlalchemy.sql.elements import ColumnElement

from multi_tenant.exceptions import TenantConfigurationError
from multi_tenant.tenancy.associations import attribute_for, find_relationship
from multi_tenant.tenancy.registry import registry
from multi_tenant.tenancy.strategies import ScopingStrategy, TenantKeys, unique

if TYPE_CHECKING:
    from multi_tenant.tenancy.proxy import ProxyBinding
    from multi_tenant.tenancy.tenant import TenantType

logger = logging.getLogger(__name__)

INCORRECT = "is incorrect"
BLANK = "can't be blank"


@dataclass(frozen=True, eq=False)
class OwnershipBinding:
    """``model.foreign_key`` references ``tenant_class.tenant_primary_key``.

    ``tenant_class`` is either a tenant or a tenant proxy; ``tenant_type`` is
    always the real tenant whose context drives the scoping.
    """

    model: type
    relationship_name: str
    tenant_class: type
    foreign_key: str
    tenant_primary_key: str
    tenant_type: TenantType
    proxy: ProxyBinding | None = None

    @property
    def strategy(self) -> ScopingStrategy:
        return self.tenant_type.strategy

    def key_source(self) -> TenantKeys:
        """Current tenant keys for filtering; a subquery when owned through a proxy."""
        if not self.tenant_type.is_current:
            return []
        if self.proxy is not None:
            return self.proxy.key_subquery(self.tenant_primary_key)
        return unique(self.tenant_type.current_keys(self.tenant_primary_key))

    def current_keys(self, session: Session | None = None) -> list[Any]:
        """Concrete current keys. Proxies need a (sync) session to run the key query."""
        keys = self.key_source()
        if isinstance(keys, list):
            return keys
        if session is None:
            raise ValueError(f"{self.model.__name__} is owned through a proxy; a session is required")
        return list(session.scalars(keys.execution_options(skip_tenant_scope=True)).all())

    def criteria(self) -> ColumnElement[bool] | None:
        """Read filter for ``model``, or ``None`` when no tenant is current."""
        return self.strategy.filter_for(getattr(self.model, self.foreign_key), self.key_source())

    def _owner(self, instance: Any) -> tuple[bool, Any, Any]:
        """(is the owner set, its key value, the owner object if known) without a lazy load.

        An association assigned since the last flush wins over the column, as the
        flush will copy its key into the column.
        """
        attr = inspect(instance).attrs[self.relationship_name]
        added = attr.history.added
        if added:
            related = added[0]
        else:
            value = getattr(instance, self.foreign_key)
            if value is not None:
                return True, value, None
            related = attr.loaded_value
        if related is NO_VALUE or related is None:
            return False, None, None
        return True, getattr(related, self.tenant_primary_key), related

    def assign(self, instance: Any, session: Session) -> None:
        """Stamp the foreign key from the current tenant(s) when it is unset."""
        if not self.tenant_type.is_current or self._owner(instance)[0]:
            return
        key = self.strategy.assignable_key(self.tenant_type.current_tenants, self.current_keys(session))
        if key is not None:
            setattr(instance, self.foreign_key, key)

    def validate(self, instance: Any, session: Session) -> list[dict]:
        """Field-level errors for ``instance``; an empty list means valid."""
        is_set, value, related = self._owner(instance)
        if not is_set:
            return [self._error(BLANK)]
        if not self.tenant_type.is_current:
            return []
        if value is None:
            # A pending owner has no key yet: only a current tenant itself is acceptable.
            if self.proxy is None and any(related is tenant for tenant in self.tenant_type.current_tenants):
                return []
            return [self._error(INCORRECT)]
        keys = {str(key) for key in self.current_keys(session)}
        if str(value) not in keys:
            return [self._error(INCORRECT)]
        return []

    def _error(self, message: str) -> dict:
        return {"field": self.foreign_key, "message": message, "entity": self.model.__name__}


def belongs_to_tenant(model: type, relationship_name: str) -> OwnershipBinding:
    """Bind ``model``'s rows to a tenant (or tenant proxy) via a many-to-one association.

    The association must be declared first::

        class Widget(Base):
            client_id = mapped_column(ForeignKey("clients.id"))
            client = relationship("Client")

        belongs_to_tenant(Widget, "client")
    """
    relationship = find_relationship(model, relationship_name, "belongs_to_tenant")
    target = relationship.mapper.class_
    tenant_type = registry.tenant_type(target)
    proxy = registry.proxy(target)
    if tenant_type is None and proxy is None:
        raise TenantConfigurationError(
            f"`belongs_to_tenant :{relationship_name}` failed because {target.__name__} "
            "has not used `acts_as_tenant` or `proxies_to_tenant`."
        )
    local, remote = _single_key_pair(relationship, relationship_name)

    binding = OwnershipBinding(
        model=model,
        relationship_name=relationship_name,
        tenant_class=target,
        foreign_key=attribute_for(model, local),
        tenant_primary_key=attribute_for(target, remote),
        tenant_type=tenant_type if proxy is None else proxy.tenant_type,
        proxy=proxy,
    )
    registry.add_ownership(binding)
    logger.info(
        "%s belongs to tenant %s via %s -> %s",
        model.__name__,
        target.__name__,
        binding.foreign_key,
        binding.tenant_primary_key,
    )
    return binding


def _single_key_pair(relationship: RelationshipProperty, name: str) -> tuple:
    if relationship.direction != MANYTOONE:
        raise TenantConfigurationError(
            f"`belongs_to_tenant :{name}` requires a many-to-one association holding the foreign key"
        )
    pairs = relationship.local_remote_pairs
    if len(pairs) != 1:
        raise TenantConfigurationError(f"`belongs_to_tenant :{name}` requires a single-column foreign key")
    return pairs[0]
