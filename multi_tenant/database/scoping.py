"""
SQLAlchemy session hooks applying tenant scoping to reads and writes.

:func:`install` registers them on :class:`sqlalchemy.orm.Session` when the
package is imported, so they also cover ``AsyncSession`` (which drives a sync
``Session`` underneath).

Bypass for one statement with ``.execution_options(skip_tenant_scope=True)``,
or for a whole session with ``session.info["skip_tenant_scope"] = True``.
"""

import logging

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from multi_tenant.exceptions import TenantValidationException
from multi_tenant.tenancy.constants import SKIP_TENANT_SCOPE
from multi_tenant.tenancy.registry import registry

logger = logging.getLogger(__name__)


def _skipped(session: Session, options: dict) -> bool:
    return bool(options.get(SKIP_TENANT_SCOPE) or session.info.get(SKIP_TENANT_SCOPE))


def scope_orm_execute(state: ORMExecuteState) -> None:
    """Attach the ownership criteria of every scoped class to ORM statements."""
    if _skipped(state.session, state.execution_options):
        return
    # Refreshing columns of an already-loaded row must never filter it away.
    if state.is_column_load:
        return
    if not (state.is_select or state.is_update or state.is_delete):
        return

    options = []
    for binding in registry.ownership_bindings():
        criteria = binding.criteria()
        if criteria is not None:
            options.append(with_loader_criteria(binding.model, criteria, include_aliases=True))

    # Join-based scoping is read-only; UPDATE/DELETE cannot carry the semi-join.
    if state.is_select:
        for binding in registry.through_bindings():
            criteria = binding.criteria()
            if criteria is not None:
                options.append(with_loader_criteria(binding.model, criteria))

    if options:
        logger.debug("Applying %d tenant criteria", len(options))
        state.statement = state.statement.options(*options)


def stamp_and_validate(session: Session, flush_context, instances) -> None:
    """Assign tenant keys to owned rows, then reject rows that disagree with the current tenants."""
    if session.info.get(SKIP_TENANT_SCOPE):
        return

    errors: list[dict] = []
    for instance in [*session.new, *session.dirty]:
        binding = registry.ownership_for(type(instance))
        if binding is None:
            continue
        binding.assign(instance, session)
        errors.extend(binding.validate(instance, session))

    if errors:
        logger.warning("Rejected flush with %d tenant ownership error(s): %s", len(errors), errors)
        raise TenantValidationException("Tenant ownership validation failed", details=errors)


def install(session_class: type = Session) -> None:
    """Register the hooks on ``session_class``. Calling it again is a no-op."""
    for identifier, fn in (("do_orm_execute", scope_orm_execute), ("before_flush", stamp_and_validate)):
        if not event.contains(session_class, identifier, fn):
            event.listen(session_class, identifier, fn)
