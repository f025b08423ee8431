"""Relationship metadata lookups used by the binding declarations."""

from sqlalchemy import inspect
from sqlalchemy.orm import RelationshipProperty

from multi_tenant.exceptions import TenantConfigurationError


def find_relationship(model: type, name: str, declaration: str) -> RelationshipProperty:
    """Return the relationship ``name`` on ``model``.

    Inspecting relationships configures the mappers, so every class the
    relationship refers to must already be defined.
    """
    mapper = inspect(model, raiseerr=False)
    if mapper is None:
        raise TenantConfigurationError(f"`{declaration} :{name}` failed because {model!r} is not a mapped class")
    relationship = mapper.relationships.get(name)
    if relationship is None:
        raise TenantConfigurationError(
            f"`{declaration} :{name}` failed because the association `:{name}` "
            f"has not been declared on {model.__name__}"
        )
    return relationship


def attribute_for(model: type, column) -> str:
    """Mapped attribute name of ``column`` on ``model``."""
    return inspect(model).get_property_by_column(column).key
