"""Tenant context, scoping strategies, ownership bindings and request gating."""

from multi_tenant.tenancy.context import TenantContext, tenant_context
from multi_tenant.tenancy.dependencies import current_tenant, require_tenant
from multi_tenant.tenancy.globals import GlobalAllowRule, parse_globals
from multi_tenant.tenancy.middleware import (
    TenantMiddleware,
    default_not_found,
    header_identifier,
    subdomain_identifier,
)
from multi_tenant.tenancy.ownership import OwnershipBinding, belongs_to_tenant
from multi_tenant.tenancy.proxy import ProxyBinding, proxies_to_tenant
from multi_tenant.tenancy.registry import TenancyRegistry, registry
from multi_tenant.tenancy.service import unscoped_query, with_tenant_context
from multi_tenant.tenancy.strategies import MultipleCurrent, ScopingStrategy, SingleCurrent
from multi_tenant.tenancy.tenant import TenantType, acts_as_tenant
from multi_tenant.tenancy.through import ThroughBinding, belongs_to_tenant_through

__all__ = [
    # Context
    "TenantContext",
    "tenant_context",
    # Declarations
    "TenantType",
    "acts_as_tenant",
    "OwnershipBinding",
    "belongs_to_tenant",
    "ThroughBinding",
    "belongs_to_tenant_through",
    "ProxyBinding",
    "proxies_to_tenant",
    "TenancyRegistry",
    "registry",
    # Strategies
    "ScopingStrategy",
    "SingleCurrent",
    "MultipleCurrent",
    # Middleware
    "TenantMiddleware",
    "GlobalAllowRule",
    "parse_globals",
    "default_not_found",
    "header_identifier",
    "subdomain_identifier",
    # Dependencies
    "current_tenant",
    "require_tenant",
    # Service
    "with_tenant_context",
    "unscoped_query",
]
