"""Tests for rule aggregation and snapshot management."""

from __future__ import annotations

import asyncio

import pytest

from permgate.permissions.aggregator import (
    RuleAggregator,
    ScopeReadError,
    ScopeSettings,
    StaticScopeProvider,
    build_rule_set,
)
from permgate.types.rules import (
    SCOPE_PRECEDENCE,
    PermissionBehavior,
    Rule,
    RuleSet,
    RuleValue,
    Scope,
)
from tests.conftest import SlowScopeProvider


class FailingScopeProvider(StaticScopeProvider):
    def __init__(self, settings, failing: Scope) -> None:
        super().__init__(settings)
        self._failing = failing

    async def read_scope(self, scope: Scope) -> ScopeSettings | None:
        if scope is self._failing:
            raise ScopeReadError(f"cannot read {scope.value}")
        return await super().read_scope(scope)


class TestDataModel:
    def test_precedence_order(self):
        assert [s.value for s in SCOPE_PRECEDENCE] == [
            "cliArgument",
            "localProjectSettings",
            "projectSettings",
            "policySettings",
            "userSettings",
            "session",
        ]

    def test_ask_rule_rejected(self):
        with pytest.raises(ValueError):
            Rule(Scope.USER_SETTINGS, PermissionBehavior.ASK, RuleValue("Bash"))

    def test_rule_to_dict(self):
        rule = Rule(Scope.PROJECT_SETTINGS, PermissionBehavior.DENY, RuleValue("Bash", "rm -rf:*"))
        assert rule.to_dict() == {
            "source": "projectSettings",
            "ruleBehavior": "deny",
            "ruleValue": {"toolName": "Bash", "ruleContent": "rm -rf:*"},
        }

    def test_rule_set_is_frozen(self):
        rule_set = RuleSet()
        with pytest.raises(AttributeError):
            rule_set.rules = ()  # type: ignore[misc]

    def test_version_not_part_of_equality(self):
        assert RuleSet(version=1) == RuleSet(version=7)


class TestBuildRuleSet:
    def test_scope_order_and_deny_before_allow(self):
        rule_set = build_rule_set({
            Scope.USER_SETTINGS: ScopeSettings(allow=("Bash",)),
            Scope.PROJECT_SETTINGS: ScopeSettings(allow=("Read",), deny=("Bash(rm -rf:*)",)),
            Scope.CLI_ARGUMENT: ScopeSettings(allow=("Edit",)),
        })
        assert [(r.source, r.behavior, r.tool_name) for r in rule_set.rules] == [
            (Scope.CLI_ARGUMENT, PermissionBehavior.ALLOW, "Edit"),
            (Scope.PROJECT_SETTINGS, PermissionBehavior.DENY, "Bash"),
            (Scope.PROJECT_SETTINGS, PermissionBehavior.ALLOW, "Read"),
            (Scope.USER_SETTINGS, PermissionBehavior.ALLOW, "Bash"),
        ]

    def test_declaration_order_kept_within_scope(self):
        rule_set = build_rule_set({
            Scope.PROJECT_SETTINGS: ScopeSettings(allow=("Bash(b)", "Bash(a)", "Bash(c)")),
        })
        assert [r.rule_content for r in rule_set.allow_rules] == ["b", "a", "c"]

    def test_ignore_sets_only_for_declaring_scopes(self):
        rule_set = build_rule_set({
            Scope.PROJECT_SETTINGS: ScopeSettings(ignore_patterns=("*.log",), base_dir="/p"),
            Scope.USER_SETTINGS: ScopeSettings(allow=("Read",)),
        })
        assert len(rule_set.ignore_patterns) == 1
        ignore_set = rule_set.ignore_patterns[0]
        assert ignore_set.scope is Scope.PROJECT_SETTINGS
        assert ignore_set.base_dir == "/p"
        assert ignore_set.patterns == ("*.log",)

    def test_by_behavior_and_scope(self):
        rule_set = build_rule_set({
            Scope.PROJECT_SETTINGS: ScopeSettings(allow=("Read",), deny=("Write",)),
            Scope.USER_SETTINGS: ScopeSettings(allow=("Bash",)),
        })
        assert [r.tool_name for r in rule_set.deny_rules] == ["Write"]
        assert [r.tool_name for r in rule_set.allow_rules] == ["Read", "Bash"]
        assert [r.tool_name for r in rule_set.from_scope(Scope.USER_SETTINGS)] == ["Bash"]


class TestRuleAggregator:
    @pytest.mark.asyncio
    async def test_idempotent(self):
        provider = StaticScopeProvider({
            Scope.PROJECT_SETTINGS: ScopeSettings(allow=("Read",), deny=("Bash(rm:*)",)),
            Scope.USER_SETTINGS: ScopeSettings(allow=("Bash",), ignore_patterns=("*.log",)),
        })
        agg = RuleAggregator(provider)
        first = await agg.reload()
        second = await agg.reload()
        assert first == second
        assert first.rules == second.rules
        assert second.version == first.version + 1

    @pytest.mark.asyncio
    async def test_get_rule_set_caches_snapshot(self):
        provider = SlowScopeProvider({Scope.USER_SETTINGS: ScopeSettings(allow=("Read",))})
        agg = RuleAggregator(provider)
        first = await agg.get_rule_set()
        reads = provider.reads
        second = await agg.get_rule_set()
        assert second is first
        assert provider.reads == reads

    @pytest.mark.asyncio
    async def test_invalidate_triggers_rebuild(self):
        provider = StaticScopeProvider({Scope.USER_SETTINGS: ScopeSettings(allow=("Read",))})
        agg = RuleAggregator(provider)
        first = await agg.get_rule_set()

        provider.set_scope(Scope.PROJECT_SETTINGS, ScopeSettings(deny=("Read",)))
        assert await agg.get_rule_set() is first

        agg.invalidate()
        assert agg.stale
        second = await agg.get_rule_set()
        assert second.version == first.version + 1
        assert [r.tool_name for r in second.deny_rules] == ["Read"]
        assert not agg.stale

    @pytest.mark.asyncio
    async def test_unreadable_scope_contributes_nothing(self, caplog):
        provider = FailingScopeProvider({
            Scope.USER_SETTINGS: ScopeSettings(allow=("Read",)),
            Scope.PROJECT_SETTINGS: ScopeSettings(allow=("Bash",)),
        }, failing=Scope.PROJECT_SETTINGS)
        rule_set = await RuleAggregator(provider).reload()
        assert [r.tool_name for r in rule_set.rules] == ["Read"]
        assert "projectSettings" in caplog.text

    @pytest.mark.asyncio
    async def test_session_rules(self):
        agg = RuleAggregator(StaticScopeProvider())
        assert (await agg.get_rule_set()).rules == ()

        agg.add_session_rule("Bash(npm test)")
        agg.add_session_rule("Read(.env)", PermissionBehavior.DENY)
        rule_set = await agg.get_rule_set()
        assert [(r.source, r.behavior, r.rule_content) for r in rule_set.rules] == [
            (Scope.SESSION, PermissionBehavior.DENY, ".env"),
            (Scope.SESSION, PermissionBehavior.ALLOW, "npm test"),
        ]

    def test_session_rule_cannot_ask(self):
        agg = RuleAggregator(StaticScopeProvider())
        with pytest.raises(ValueError):
            agg.add_session_rule("Bash", PermissionBehavior.ASK)

    @pytest.mark.asyncio
    async def test_restricted_scopes(self):
        provider = StaticScopeProvider({
            Scope.USER_SETTINGS: ScopeSettings(allow=("Read",)),
            Scope.POLICY_SETTINGS: ScopeSettings(deny=("Bash",)),
        })
        agg = RuleAggregator(provider, scopes=[Scope.POLICY_SETTINGS])
        rule_set = await agg.reload()
        assert [r.tool_name for r in rule_set.rules] == ["Bash"]

    @pytest.mark.asyncio
    async def test_concurrent_reloads_publish_complete_snapshots(self):
        settings = {
            scope: ScopeSettings(allow=(f"Tool{i}",), deny=(f"Other{i}",))
            for i, scope in enumerate(SCOPE_PRECEDENCE[:-1])
        }
        agg = RuleAggregator(SlowScopeProvider(settings))
        expected = build_rule_set(settings)

        async def reader():
            seen = []
            for _ in range(20):
                snapshot = agg.snapshot
                if snapshot is not None:
                    seen.append(snapshot)
                await asyncio.sleep(0)
            return seen

        results = await asyncio.gather(
            agg.reload(), agg.reload(), agg.reload(), reader(), agg.get_rule_set(),
        )
        for snapshot in [*results[:3], *results[3], results[4]]:
            assert snapshot == expected
        assert agg.version == 3
        assert len({r.version for r in results[:3]}) == 3

    @pytest.mark.asyncio
    async def test_concurrent_get_rule_set_builds_once(self):
        provider = SlowScopeProvider({Scope.USER_SETTINGS: ScopeSettings(allow=("Read",))})
        agg = RuleAggregator(provider)
        results = await asyncio.gather(*(agg.get_rule_set() for _ in range(5)))
        assert all(r is results[0] for r in results)
        assert agg.version == 1

    @pytest.mark.asyncio
    async def test_cancelled_rebuild_keeps_previous_snapshot(self):
        provider = SlowScopeProvider({Scope.USER_SETTINGS: ScopeSettings(allow=("Read",))})
        agg = RuleAggregator(provider)
        first = await agg.reload()

        task = asyncio.create_task(agg.reload())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert agg.snapshot is first
        assert agg.version == first.version
