"""Test fixtures: scripted prompt resolvers, rule sets and project trees."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest

from permgate.permissions.aggregator import ScopeSettings, StaticScopeProvider, build_rule_set
from permgate.types.rules import RuleSet, Scope


class MockPromptResolver:
    """A deterministic prompt tool for testing.

    Usage:
        resolver = MockPromptResolver({"behavior": "allow"})
        resolver = MockPromptResolver(error=RuntimeError("boom"))
        resolver = MockPromptResolver({"behavior": "deny"}, delay=10)
    """

    def __init__(
        self,
        result: Mapping[str, Any] | None = None,
        *,
        name: str = "mock_prompt",
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self._result = result
        self._delay = delay
        self._error = error
        self.calls: list[tuple[str, str]] = []
        self.started = asyncio.Event()

    async def resolve(self, tool_name: str, content: str) -> Mapping[str, Any] | None:
        self.calls.append((tool_name, content))
        self.started.set()
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._result


class SlowScopeProvider(StaticScopeProvider):
    """Static provider that yields to the event loop between scopes."""

    def __init__(self, settings: Mapping[Scope, ScopeSettings] | None = None) -> None:
        super().__init__(settings)
        self.reads = 0

    async def read_scope(self, scope: Scope) -> ScopeSettings | None:
        self.reads += 1
        await asyncio.sleep(0)
        return await super().read_scope(scope)


def make_rule_set(
    *,
    allow: Iterable[str] = (),
    deny: Iterable[str] = (),
    ignore: Iterable[str] = (),
    scope: Scope = Scope.PROJECT_SETTINGS,
    base_dir: str = ".",
) -> RuleSet:
    """Single-scope RuleSet built the same way the aggregator builds one."""
    return build_rule_set({
        scope: ScopeSettings(
            allow=tuple(allow),
            deny=tuple(deny),
            ignore_patterns=tuple(ignore),
            base_dir=base_dir,
        ),
    })


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a small project tree for path checks."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("print('hello')\n")
    (root / "build").mkdir()
    (root / "build" / "output.log").write_text("ok\n")
    (root / ".env").write_text("TOKEN=secret\n")
    return root


@pytest.fixture
def allow_resolver() -> MockPromptResolver:
    return MockPromptResolver({"behavior": "allow"})


@pytest.fixture
def deny_resolver() -> MockPromptResolver:
    return MockPromptResolver({"behavior": "deny", "message": "Rejected by reviewer"})
