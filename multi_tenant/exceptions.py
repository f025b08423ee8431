"""Exception hierarchy for tenant scoping and request gating."""

from __future__ import annotations


class AppException(Exception):
    """Base exception for errors that map onto an HTTP error envelope.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


class ValidationException(AppException):
    code = "VALIDATION_ERROR"
    status_code = 422


class TenantNotFoundException(NotFoundException):
    code = "TENANT_NOT_FOUND"


class TenantValidationException(ValidationException):
    """Raised from flush when owned rows disagree with the current tenant(s).

    ``details`` holds one ``{"field", "message", "entity"}`` entry per failure,
    attached to the foreign-key attribute that failed.
    """

    code = "TENANT_VALIDATION_ERROR"


class TenantConfigurationError(Exception):
    """A tenancy declaration is invalid. Raised at declaration time, never retried."""


class UnsupportedAssociationError(TenantConfigurationError):
    """The association shape cannot back a tenant proxy."""


class InvalidTenantStateError(RuntimeError):
    """The singular accessor was used while several tenants are current."""


class NilProxyError(RuntimeError):
    """A tenant is current but the proxy record it requires does not exist."""

    def __init__(self, tenant_class: type, tenant_id: object) -> None:
        super().__init__(f"Missing proxy for tenant {tenant_class.__name__}#{tenant_id}")
        self.tenant_class = tenant_class
        self.tenant_id = tenant_id
