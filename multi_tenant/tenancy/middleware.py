"""Starlette middleware that sets the current tenant for the duration of each request."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from multi_tenant.config import settings
from multi_tenant.database.session import session_scope
from multi_tenant.errors import error_response
from multi_tenant.exceptions import TenantConfigurationError, TenantNotFoundException
from multi_tenant.tenancy.context import tenant_context
from multi_tenant.tenancy.globals import PathMatcher, any_match, parse_globals, parse_paths
from multi_tenant.tenancy.registry import registry
from multi_tenant.tenancy.tenant import TenantType

logger = logging.getLogger(__name__)

IdentifierExtractor = Callable[[Request], Any]
NotFoundHandler = Callable[[Any], Response | Awaitable[Response]]
TenantModel = TenantType | type | str | Callable[[], Any]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


def default_not_found(identifier: Any) -> Response:
    """404 error envelope naming every identifier that did not resolve to a tenant."""
    identifiers = _as_list(identifier)
    if len(identifiers) <= 1:
        message = f"'{identifiers[0] if identifiers else ''}' is not a valid tenant"
    else:
        message = "Invalid tenant: " + ", ".join(str(i) for i in identifiers)
    exc = TenantNotFoundException(
        message,
        details=[{"field": "tenant", "message": f"'{i}' is not a valid tenant"} for i in identifiers],
    )
    return error_response(
        status_code=settings.tenant_not_found_status,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


def header_identifier(name: str | None = None, many: bool = False) -> IdentifierExtractor:
    """Read the tenant identifier from a request header (comma-separated when ``many``)."""
    header = name or settings.tenant_header

    def extract(request: Request) -> Any:
        raw = request.headers.get(header)
        if raw is None:
            return [] if many else None
        if many:
            return [part.strip() for part in raw.split(",") if part.strip()]
        return raw.strip()

    return extract


def subdomain_identifier() -> IdentifierExtractor:
    """Use the left-most label of the host name, e.g. ``acme`` for ``acme.example.com``."""

    def extract(request: Request) -> str | None:
        host = request.url.hostname or ""
        labels = host.split(".")
        return labels[0] if len(labels) > 2 else None

    return extract


class TenantMiddleware(BaseHTTPMiddleware):
    """Resolve the tenant for each request, or bypass / reject it.

    Per request: clear any stale tenant, extract the identifier(s), let global
    paths and global identifiers through without a tenant, otherwise look the
    tenant(s) up and make them current while the downstream app runs. The
    tenant is cleared again on every exit path.

    ``globals`` maps an identifier to ``{path: "any" | method | [methods]}``,
    where ``path`` is an exact string or a compiled regex. A matching identifier
    on a matching path/method is let through with NO current tenant, even when
    no tenant row has that identifier. An identifier that has rules but arrives
    on a path/method matching none of them is deliberately not rejected here;
    it is looked up like any other identifier and 404s only if no tenant exists.

    The lookup runs in its own unscoped ``session_scope`` from
    ``session_factory`` (the application's default factory when ``None``).
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        model: TenantModel,
        identifier: IdentifierExtractor,
        globals: Mapping[Any, Mapping[PathMatcher, Any]] | None = None,
        global_identifiers: Iterable[Any] = (),
        global_paths: Iterable[PathMatcher] = (),
        not_found: NotFoundHandler | None = None,
        tenant_filter: Sequence[ColumnElement[bool]] = (),
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        super().__init__(app)
        self.model = model
        self.identifier = identifier
        self.globals = parse_globals(globals)
        self.global_identifiers = frozenset(global_identifiers)
        self.global_paths = parse_paths(global_paths)
        self.not_found = not_found or default_not_found
        self.tenant_filter = tuple(tenant_filter)
        self.session_factory = session_factory
        self._tenant_type: TenantType | None = None

    @property
    def tenant_type(self) -> TenantType:
        """The tenant type this middleware handles, resolved on first use."""
        if self._tenant_type is None:
            self._tenant_type = _tenant_type_for(self.model)
        return self._tenant_type

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        tenant_type = self.tenant_type
        tenant_context.clear(tenant_type)
        try:
            value = self.identifier(request)
            if inspect.isawaitable(value):
                value = await value

            if self._is_global(tenant_type, request, value):
                logger.debug("Global access for %r on %s %s", value, request.method, request.url.path)
                return await call_next(request)

            async with session_scope(self.session_factory, unscoped=True) as session:
                entities = await tenant_type.strategy.resolve(session, value, *self.tenant_filter)
            if not entities:
                logger.info("No tenant for %r on %s %s", value, request.method, request.url.path)
                response = self.not_found(value)
                if inspect.isawaitable(response):
                    response = await response
                return response

            tenant_context.set(tenant_type, entities)
            return await call_next(request)
        finally:
            tenant_context.clear(tenant_type)

    def _is_global(self, tenant_type: TenantType, request: Request, value: Any) -> bool:
        path, method = request.url.path, request.method
        if any_match(self.global_paths, path, method):
            return True
        identifiers = tenant_type.strategy.identifiers(value)
        if any(identifier in self.global_identifiers for identifier in identifiers):
            return True
        return any(
            any_match(rules, path, method)
            for rules in tenant_type.strategy.matching_globals(value, self.globals)
        )


def _tenant_type_for(model: TenantModel) -> TenantType:
    if callable(model) and not isinstance(model, type):
        model = model()
    if isinstance(model, TenantType):
        return model
    if isinstance(model, str):
        tenant_type = registry.find_tenant_type(model)
    else:
        tenant_type = registry.tenant_type(model)
    if tenant_type is None:
        raise TenantConfigurationError(f"{model!r} has not used `acts_as_tenant`")
    return tenant_type
