"""Declaring that a mapped class belongs to a tenant through another owned class."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import RelationshipProperty
from sqlalchemy.sql.elements import ColumnElement

from multi_tenant.exceptions import TenantConfigurationError
from multi_tenant.tenancy.associations import find_relationship
from multi_tenant.tenancy.ownership import OwnershipBinding
from multi_tenant.tenancy.registry import registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ThroughBinding:
    """``model`` is visible when one of its ``relationship_name`` rows belongs to a current tenant.

    There is no local tenant column, so nothing is assigned on write.
    """

    model: type
    relationship_name: str
    relationship: RelationshipProperty
    delegate: OwnershipBinding

    def criteria(self) -> ColumnElement[bool] | None:
        return self.delegate.strategy.through_filter(self, self.delegate.key_source())


def belongs_to_tenant_through(model: type, relationship_name: str) -> ThroughBinding:
    """Scope ``model`` through an association whose target already uses ``belongs_to_tenant``::

        class User(Base):
            memberships = relationship("Membership")

        belongs_to_tenant_through(User, "memberships")
    """
    relationship = find_relationship(model, relationship_name, "belongs_to_tenant_through")
    target = relationship.mapper.class_
    delegate = registry.ownership(target)
    if delegate is None:
        raise TenantConfigurationError(
            f"`belongs_to_tenant_through :{relationship_name}` failed because "
            f"{target.__name__} has not used `belongs_to_tenant`"
        )
    binding = ThroughBinding(
        model=model,
        relationship_name=relationship_name,
        relationship=relationship,
        delegate=delegate,
    )
    registry.add_through(binding)
    logger.info("%s belongs to tenant through %s", model.__name__, target.__name__)
    return binding
