"""Rule aggregation: merge per-scope rule lists into one RuleSet snapshot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from permgate.permissions.parser import parse_rule_value
from permgate.types.rules import (
    SCOPE_PRECEDENCE,
    IgnorePatternSet,
    PermissionBehavior,
    Rule,
    RuleSet,
    Scope,
)

logger = logging.getLogger(__name__)


class ScopeReadError(OSError):
    """A scope's configuration exists but could not be read or parsed."""


@dataclass(frozen=True, slots=True)
class ScopeSettings:
    """Raw rule strings and ignore patterns declared by one scope."""

    allow: tuple[str, ...] = ()
    deny: tuple[str, ...] = ()
    ignore_patterns: tuple[str, ...] = ()
    base_dir: str = "."


@runtime_checkable
class ScopeProvider(Protocol):
    """Supplies raw settings per scope. Returns None for an absent scope."""

    async def read_scope(self, scope: Scope) -> ScopeSettings | None:
        ...


class StaticScopeProvider:
    """In-memory provider, used for CLI-argument rules and tests."""

    def __init__(self, settings: Mapping[Scope, ScopeSettings] | None = None) -> None:
        self._settings: dict[Scope, ScopeSettings] = dict(settings or {})

    def set_scope(self, scope: Scope, settings: ScopeSettings) -> None:
        self._settings[scope] = settings

    async def read_scope(self, scope: Scope) -> ScopeSettings | None:
        return self._settings.get(scope)


def build_rule_set(
    settings_by_scope: Mapping[Scope, ScopeSettings],
    *,
    version: int = 0,
) -> RuleSet:
    """Build a RuleSet from raw settings, walking scopes in precedence order.

    Within a scope, deny rules come before allow rules, each in the order
    they were declared.
    """
    rules: list[Rule] = []
    ignore_sets: list[IgnorePatternSet] = []

    for scope in SCOPE_PRECEDENCE:
        settings = settings_by_scope.get(scope)
        if settings is None:
            continue
        rules.extend(_rules_from(scope, PermissionBehavior.DENY, settings.deny))
        rules.extend(_rules_from(scope, PermissionBehavior.ALLOW, settings.allow))
        if settings.ignore_patterns:
            ignore_sets.append(IgnorePatternSet(
                scope=scope,
                base_dir=settings.base_dir,
                patterns=tuple(settings.ignore_patterns),
            ))

    return RuleSet(rules=tuple(rules), ignore_patterns=tuple(ignore_sets), version=version)


def _rules_from(
    scope: Scope, behavior: PermissionBehavior, raw_rules: Iterable[str],
) -> list[Rule]:
    return [
        Rule(source=scope, behavior=behavior, value=parse_rule_value(raw))
        for raw in raw_rules
    ]


class RuleAggregator:
    """Owns the current RuleSet snapshot and rebuilds it on demand.

    Rebuilds are serialised by a lock and publish the new snapshot with a
    single assignment, so readers always hold a complete RuleSet. Session
    rules live here rather than in a provider.
    """

    def __init__(
        self,
        provider: ScopeProvider,
        scopes: Iterable[Scope] = SCOPE_PRECEDENCE,
    ) -> None:
        self._provider = provider
        self._scopes = tuple(scopes)
        self._lock = asyncio.Lock()
        self._snapshot: RuleSet | None = None
        self._version = 0
        self._generation = 0  # bumped by invalidate()
        self._built_generation = -1
        self._session_allow: list[str] = []
        self._session_deny: list[str] = []

    @property
    def version(self) -> int:
        return self._version

    @property
    def snapshot(self) -> RuleSet | None:
        """The last fully built RuleSet, or None before the first load."""
        return self._snapshot

    def invalidate(self) -> None:
        """Mark the snapshot stale; the next get_rule_set() rebuilds it."""
        self._generation += 1

    @property
    def stale(self) -> bool:
        return self._snapshot is None or self._built_generation != self._generation

    def add_session_rule(
        self, raw: str, behavior: PermissionBehavior = PermissionBehavior.ALLOW,
    ) -> None:
        """Record a rule granted interactively for the rest of this run."""
        if behavior is PermissionBehavior.DENY:
            self._session_deny.append(raw)
        elif behavior is PermissionBehavior.ALLOW:
            self._session_allow.append(raw)
        else:
            raise ValueError("session rules can only allow or deny")
        self.invalidate()

    async def get_rule_set(self) -> RuleSet:
        """Return the current snapshot, rebuilding it first if stale."""
        snapshot = self._snapshot
        if snapshot is not None and not self.stale:
            return snapshot
        async with self._lock:
            # Another writer may have rebuilt while we waited
            if self._snapshot is not None and not self.stale:
                return self._snapshot
            return await self._rebuild()

    async def reload(self) -> RuleSet:
        """Re-read every scope and publish a new snapshot unconditionally."""
        async with self._lock:
            return await self._rebuild()

    async def _rebuild(self) -> RuleSet:
        generation = self._generation
        settings = await self._read_all()
        self._version += 1
        rule_set = build_rule_set(settings, version=self._version)
        self._snapshot = rule_set
        self._built_generation = generation
        logger.debug(
            "Rule set v%d built: %d rules, %d ignore scopes",
            rule_set.version, len(rule_set.rules), len(rule_set.ignore_patterns),
        )
        return rule_set

    async def _read_all(self) -> dict[Scope, ScopeSettings]:
        settings: dict[Scope, ScopeSettings] = {}
        for scope in self._scopes:
            if scope is Scope.SESSION:
                continue
            try:
                scope_settings = await self._provider.read_scope(scope)
            except Exception as exc:
                logger.warning("Skipping unreadable %s scope: %s", scope.value, exc)
                continue
            if scope_settings is not None:
                settings[scope] = scope_settings

        if Scope.SESSION in self._scopes and (self._session_allow or self._session_deny):
            settings[Scope.SESSION] = ScopeSettings(
                allow=tuple(self._session_allow),
                deny=tuple(self._session_deny),
            )
        return settings
