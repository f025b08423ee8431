"""Global (bypass) identifiers and the path/method rules they are allowed on."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from multi_tenant.tenancy.constants import ANY_METHOD

PathMatcher = str | re.Pattern


@dataclass(frozen=True)
class GlobalAllowRule:
    """Path (exact string or regex) plus allowed methods; ``methods=None`` allows any."""

    path: PathMatcher
    methods: frozenset[str] | None = None

    def matches(self, path: str, method: str) -> bool:
        if isinstance(self.path, re.Pattern):
            path_ok = self.path.search(path) is not None
        else:
            path_ok = self.path == path
        return path_ok and (self.methods is None or method.upper() in self.methods)


def _methods(value: Any) -> frozenset[str] | None:
    if value is None or (isinstance(value, str) and value.lower() == ANY_METHOD):
        return None
    if isinstance(value, str):
        return frozenset({value.upper()})
    return frozenset(str(m).upper() for m in value)


def parse_globals(globals: Mapping[Any, Mapping[PathMatcher, Any]] | None) -> Mapping[Any, tuple[GlobalAllowRule, ...]]:
    """Normalize ``{identifier: {path: "any" | method | [methods]}}`` into immutable rules."""
    parsed = {
        identifier: tuple(GlobalAllowRule(path, _methods(methods)) for path, methods in patterns.items())
        for identifier, patterns in (globals or {}).items()
    }
    return MappingProxyType(parsed)


def parse_paths(paths: Iterable[PathMatcher]) -> tuple[GlobalAllowRule, ...]:
    return tuple(GlobalAllowRule(path) for path in paths)


def any_match(rules: Iterable[GlobalAllowRule], path: str, method: str) -> bool:
    return any(rule.matches(path, method) for rule in rules)
