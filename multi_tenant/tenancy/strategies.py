"""
Scoping strategies.

A tenant type picks exactly one strategy when it is declared:

- ``SingleCurrent``: at most one tenant is current; ``current`` is an entity or ``None``.
- ``MultipleCurrent``: any number of tenants are current; ``current`` is a list and
  reads are scoped to rows owned by ANY of them.

Bindings only ever talk to the ``ScopingStrategy`` interface.

When no tenant is current every filter is a pass-through, so reads return the
rows of all tenants. This fail-open default supports unscoped administrative
access; callers that need fail-closed behaviour must check ``is_current``
themselves.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import MANYTOONE, ONETOMANY, RelationshipProperty, Session
from sqlalchemy.sql.elements import ColumnElement

from multi_tenant.exceptions import (
    InvalidTenantStateError,
    TenantConfigurationError,
    UnsupportedAssociationError,
)

if TYPE_CHECKING:
    from multi_tenant.tenancy.tenant import TenantType
    from multi_tenant.tenancy.through import ThroughBinding

logger = logging.getLogger(__name__)

SINGLE = "single"
MULTIPLE = "multiple"

# Keys are either concrete primary-key values or a subquery yielding them (proxies).
TenantKeys = Sequence[Any] | Select


def unique(values: Iterable[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class ScopingStrategy(ABC):
    """Behaviour shared by both cardinality modes."""

    mode: str

    def __init__(self, tenant_type: TenantType) -> None:
        self.tenant_type = tenant_type

    # --- Resolution ---

    @abstractmethod
    def split(self, value: Any) -> tuple[list[Any], list[Any]]:
        """Partition raw input into (tenant entities, identifiers to look up)."""

    @abstractmethod
    def normalize(self, entities: Iterable[Any]) -> tuple:
        """Turn resolved entities into the tuple stored in the tenant context."""

    @abstractmethod
    def present(self, entities: tuple) -> Any:
        """Shape of ``current`` as seen by callers."""

    def lookup_statement(self, identifiers: Sequence[Any], *criteria: ColumnElement[bool]) -> Select:
        """One query matching every identifier, plus any extra lookup criteria."""
        model = self.tenant_type.model
        column = getattr(model, self.tenant_type.identifier)
        stmt = select(model).where(column.in_(list(identifiers)), *criteria)
        return stmt.execution_options(skip_tenant_scope=True)

    def _finish(self, entities: list[Any], found: Sequence[Any]) -> tuple:
        return self.normalize([*entities, *found])

    async def resolve(self, session: AsyncSession, value: Any, *criteria: ColumnElement[bool]) -> tuple:
        """Resolve entities and/or identifiers into the tuple of tenant entities."""
        entities, identifiers = self.split(value)
        found: Sequence[Any] = []
        if identifiers:
            result = await session.scalars(self.lookup_statement(identifiers, *criteria))
            found = self._limit(result.all())
            logger.debug(
                "Resolved %d %s row(s) for %d identifier(s)",
                len(found),
                self.tenant_type.model.__name__,
                len(identifiers),
            )
        return self._finish(entities, found)

    def resolve_sync(self, session: Session, value: Any, *criteria: ColumnElement[bool]) -> tuple:
        entities, identifiers = self.split(value)
        found: Sequence[Any] = []
        if identifiers:
            found = self._limit(session.scalars(self.lookup_statement(identifiers, *criteria)).all())
        return self._finish(entities, found)

    def _limit(self, found: Sequence[Any]) -> Sequence[Any]:
        return found

    # --- Filters ---

    def filter_for(self, column: Any, keys: TenantKeys) -> ColumnElement[bool] | None:
        """Ownership predicate for ``column``, or ``None`` to leave the read unrestricted."""
        if isinstance(keys, Select):
            return column.in_(keys)
        if not keys:
            return None
        if len(keys) == 1:
            return column == keys[0]
        return self._many_keys_filter(column, keys)

    @abstractmethod
    def _many_keys_filter(self, column: Any, keys: Sequence[Any]) -> ColumnElement[bool]:
        ...

    def through_filter(self, binding: ThroughBinding, keys: TenantKeys) -> ColumnElement[bool] | None:
        """Semi-join through the delegate association.

        Rendered as ``EXISTS`` against the delegate table, so an owner with many
        matching delegate rows still appears once.
        """
        delegate = binding.delegate
        inner = self.filter_for(getattr(delegate.model, delegate.foreign_key), keys)
        if inner is None:
            return None
        attr = getattr(binding.model, binding.relationship_name)
        return attr.any(inner) if binding.relationship.uselist else attr.has(inner)

    # --- Writes ---

    @abstractmethod
    def assignable_key(self, tenants: tuple, keys: Sequence[Any]) -> Any | None:
        """Foreign-key value to stamp on a new owned row, or ``None`` when ambiguous."""

    # --- Declaration checks ---

    def check_proxy_shape(self, relationship: RelationshipProperty) -> None:
        """Only shapes where each tenant reaches at most one proxy are accepted."""
        inverse = _inverse_of(relationship)
        if inverse is None:
            raise TenantConfigurationError(
                f"proxies_to_tenant :{relationship.key}: the association must declare "
                "back_populates or backref"
            )
        shape = (_macro(relationship), _macro(inverse))
        if shape not in SUPPORTED_PROXY_SHAPES:
            raise UnsupportedAssociationError(
                f"proxies_to_tenant does not support {shape[0]} associations with {shape[1]} inverses"
            )

    # --- Global allow list ---

    def identifier_of(self, value: Any) -> Any:
        if isinstance(value, self.tenant_type.model):
            return getattr(value, self.tenant_type.identifier)
        return value

    @abstractmethod
    def identifiers(self, value: Any) -> list[Any]:
        """Flatten raw request input into a list of identifiers."""

    def matching_globals(self, value: Any, globals: Mapping[Any, Any]) -> list[Any]:
        """Allow rules registered for any identifier in ``value``."""
        return [globals[ident] for ident in self.identifiers(value) if ident in globals]


class SingleCurrent(ScopingStrategy):
    mode = SINGLE

    def split(self, value: Any) -> tuple[list[Any], list[Any]]:
        if value is None:
            return [], []
        if isinstance(value, self.tenant_type.model):
            return [value], []
        return [], [value]

    def _limit(self, found: Sequence[Any]) -> Sequence[Any]:
        return found[:1]

    def normalize(self, entities: Iterable[Any]) -> tuple:
        entities = tuple(e for e in entities if e is not None)
        if len(entities) > 1:
            raise InvalidTenantStateError(
                f"{self.tenant_type.model.__name__} allows a single current tenant, got {len(entities)}"
            )
        return entities

    def present(self, entities: tuple) -> Any:
        if len(entities) > 1:
            raise InvalidTenantStateError(
                f"{self.tenant_type.model.__name__}.current is singular but {len(entities)} tenants are current"
            )
        return entities[0] if entities else None

    def _many_keys_filter(self, column: Any, keys: Sequence[Any]) -> ColumnElement[bool]:
        raise InvalidTenantStateError(
            f"{self.tenant_type.model.__name__} allows a single current tenant, got {len(keys)} keys"
        )

    def assignable_key(self, tenants: tuple, keys: Sequence[Any]) -> Any | None:
        return keys[0] if tenants and len(keys) == 1 else None

    def identifiers(self, value: Any) -> list[Any]:
        return [] if value is None else [self.identifier_of(value)]


class MultipleCurrent(ScopingStrategy):
    mode = MULTIPLE

    def split(self, value: Any) -> tuple[list[Any], list[Any]]:
        entities: list[Any] = []
        identifiers: list[Any] = []
        for item in self._items(value):
            if isinstance(item, self.tenant_type.model):
                entities.append(item)
            elif item is not None:
                identifiers.append(item)
        return entities, identifiers

    @staticmethod
    def _items(value: Any) -> list[Any]:
        if value is None:
            return []
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            return [value]
        return list(value)

    def normalize(self, entities: Iterable[Any]) -> tuple:
        return tuple(e for e in entities if e is not None)

    def present(self, entities: tuple) -> list[Any]:
        return list(entities)

    def _many_keys_filter(self, column: Any, keys: Sequence[Any]) -> ColumnElement[bool]:
        return column.in_(list(keys))

    def assignable_key(self, tenants: tuple, keys: Sequence[Any]) -> Any | None:
        if not tenants or not keys:
            return None
        if len(unique(keys)) == 1:
            return keys[0]
        # Several rows of the same logical tenant (same identifier) are current.
        if len({self.identifier_of(t) for t in tenants}) == 1:
            return keys[0]
        return None

    def identifiers(self, value: Any) -> list[Any]:
        return [self.identifier_of(item) for item in self._items(value) if item is not None]


STRATEGIES: dict[str, type[ScopingStrategy]] = {
    SINGLE: SingleCurrent,
    MULTIPLE: MultipleCurrent,
}


def strategy_for(mode: str, tenant_type: TenantType) -> ScopingStrategy:
    try:
        strategy_class = STRATEGIES[mode]
    except KeyError:
        raise TenantConfigurationError(f"Unknown current option {mode!r}") from None
    return strategy_class(tenant_type)


HAS_MANY = "has_many"
HAS_ONE = "has_one"
BELONGS_TO = "belongs_to"
MANY_TO_MANY = "many_to_many"

SUPPORTED_PROXY_SHAPES = {
    (HAS_MANY, BELONGS_TO),
    (HAS_ONE, BELONGS_TO),
    (BELONGS_TO, HAS_ONE),
}


def _macro(relationship: RelationshipProperty) -> str:
    if relationship.direction == MANYTOONE:
        return BELONGS_TO
    if relationship.direction == ONETOMANY:
        return HAS_MANY if relationship.uselist else HAS_ONE
    return MANY_TO_MANY


def _inverse_of(relationship: RelationshipProperty) -> RelationshipProperty | None:
    name = relationship.back_populates
    if not name and relationship.backref:
        backref = relationship.backref
        name = backref if isinstance(backref, str) else backref[0]
    if name:
        return relationship.mapper.relationships.get(name)
    return None
