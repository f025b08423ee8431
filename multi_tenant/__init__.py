"""Row-level multi-tenancy for SQLAlchemy models and Starlette/FastAPI apps."""

from multi_tenant.database.scoping import install
from multi_tenant.exceptions import (
    InvalidTenantStateError,
    NilProxyError,
    TenantConfigurationError,
    TenantValidationException,
    UnsupportedAssociationError,
)
from multi_tenant.tenancy import (
    TenantMiddleware,
    acts_as_tenant,
    belongs_to_tenant,
    belongs_to_tenant_through,
    proxies_to_tenant,
    registry,
    tenant_context,
)

install()

__all__ = [
    "acts_as_tenant",
    "belongs_to_tenant",
    "belongs_to_tenant_through",
    "proxies_to_tenant",
    "registry",
    "tenant_context",
    "install",
    "TenantMiddleware",
    "InvalidTenantStateError",
    "NilProxyError",
    "TenantConfigurationError",
    "TenantValidationException",
    "UnsupportedAssociationError",
]
