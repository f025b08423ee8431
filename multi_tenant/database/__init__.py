from multi_tenant.database.base import Base, IntPrimaryKeyMixin, TimestampMixin
from multi_tenant.database.scoping import install, scope_orm_execute, stamp_and_validate

__all__ = [
    "Base",
    "IntPrimaryKeyMixin",
    "TimestampMixin",
    "install",
    "scope_orm_execute",
    "stamp_and_validate",
]
