"""Write-once registry of tenancy declarations, keyed by mapped class."""

from __future__ import annotations

from typing import TYPE_CHECKING

from multi_tenant.exceptions import TenantConfigurationError

if TYPE_CHECKING:
    from multi_tenant.tenancy.ownership import OwnershipBinding
    from multi_tenant.tenancy.proxy import ProxyBinding
    from multi_tenant.tenancy.tenant import TenantType
    from multi_tenant.tenancy.through import ThroughBinding


class TenancyRegistry:
    def __init__(self) -> None:
        self._tenants: dict[type, TenantType] = {}
        self._proxies: dict[type, ProxyBinding] = {}
        self._ownership: dict[type, OwnershipBinding] = {}
        self._through: dict[type, ThroughBinding] = {}

    @staticmethod
    def _add(table: dict, model: type, record: object, role: str) -> None:
        if model in table:
            raise TenantConfigurationError(f"{model.__name__} is already declared as {role}")
        table[model] = record

    def add_tenant(self, tenant_type: TenantType) -> None:
        if tenant_type.model in self._proxies:
            raise TenantConfigurationError(
                f"{tenant_type.model.__name__} is already a tenant proxy and cannot also be a tenant"
            )
        self._add(self._tenants, tenant_type.model, tenant_type, "a tenant")

    def add_proxy(self, binding: ProxyBinding) -> None:
        if binding.model in self._tenants:
            raise TenantConfigurationError(
                f"{binding.model.__name__} is already a tenant and cannot also be a tenant proxy"
            )
        self._add(self._proxies, binding.model, binding, "a tenant proxy")

    def add_ownership(self, binding: OwnershipBinding) -> None:
        self._add(self._ownership, binding.model, binding, "belonging to a tenant")

    def add_through(self, binding: ThroughBinding) -> None:
        self._add(self._through, binding.model, binding, "belonging to a tenant through an association")

    def tenant_type(self, model: type) -> TenantType | None:
        return self._tenants.get(model)

    def proxy(self, model: type) -> ProxyBinding | None:
        return self._proxies.get(model)

    def ownership(self, model: type) -> OwnershipBinding | None:
        return self._ownership.get(model)

    def through(self, model: type) -> ThroughBinding | None:
        return self._through.get(model)

    def ownership_for(self, cls: type) -> OwnershipBinding | None:
        """Ownership binding of ``cls`` or of its nearest mapped base class."""
        for base in cls.__mro__:
            binding = self._ownership.get(base)
            if binding is not None:
                return binding
        return None

    def is_tenant(self, model: type) -> bool:
        return model in self._tenants

    def is_proxy(self, model: type) -> bool:
        return model in self._proxies

    def belongs_to_tenant(self, model: type) -> bool:
        return model in self._ownership

    def belongs_to_tenant_through(self, model: type) -> bool:
        return model in self._through

    def find_tenant_type(self, name: str) -> TenantType | None:
        """Find a tenant type by class name or by ``module.QualName`` path."""
        for model, tenant_type in self._tenants.items():
            if name in (model.__name__, model.__qualname__, f"{model.__module__}.{model.__qualname__}"):
                return tenant_type
        return None

    def ownership_bindings(self) -> list[OwnershipBinding]:
        return list(self._ownership.values())

    def through_bindings(self) -> list[ThroughBinding]:
        return list(self._through.values())

    def clear(self) -> None:
        """Forget every declaration. Intended for test isolation only."""
        self._tenants.clear()
        self._proxies.clear()
        self._ownership.clear()
        self._through.clear()


registry = TenancyRegistry()
