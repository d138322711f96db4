"""Rule data model: scopes, rules and immutable rule-set snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Scope(Enum):
    """Configuration origin of a rule."""

    CLI_ARGUMENT = "cliArgument"
    LOCAL_PROJECT_SETTINGS = "localProjectSettings"
    PROJECT_SETTINGS = "projectSettings"
    POLICY_SETTINGS = "policySettings"
    USER_SETTINGS = "userSettings"
    SESSION = "session"


# Highest precedence first. Only decides which rule is found first within a
# behavior class; a deny from any scope still beats every allow.
SCOPE_PRECEDENCE: tuple[Scope, ...] = (
    Scope.CLI_ARGUMENT,
    Scope.LOCAL_PROJECT_SETTINGS,
    Scope.PROJECT_SETTINGS,
    Scope.POLICY_SETTINGS,
    Scope.USER_SETTINGS,
    Scope.SESSION,
)


class PermissionBehavior(Enum):
    """Verdict of a rule or a decision."""

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


@dataclass(frozen=True, slots=True)
class RuleValue:
    """Parsed ``ToolName(content)`` pair."""

    tool_name: str
    rule_content: str | None = None


@dataclass(frozen=True, slots=True)
class Rule:
    """A single allow/deny statement tagged with the scope it came from."""

    source: Scope
    behavior: PermissionBehavior
    value: RuleValue

    def __post_init__(self) -> None:
        if self.behavior is PermissionBehavior.ASK:
            raise ValueError("rules can only allow or deny")

    @property
    def tool_name(self) -> str:
        return self.value.tool_name

    @property
    def rule_content(self) -> str | None:
        return self.value.rule_content

    def to_dict(self) -> dict[str, object]:
        value: dict[str, object] = {"toolName": self.value.tool_name}
        if self.value.rule_content is not None:
            value["ruleContent"] = self.value.rule_content
        return {
            "source": self.source.value,
            "ruleBehavior": self.behavior.value,
            "ruleValue": value,
        }


@dataclass(frozen=True, slots=True)
class IgnorePatternSet:
    """Ignore patterns declared by one scope, relative to its base directory."""

    scope: Scope
    base_dir: str
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable snapshot of the aggregated rules.

    ``version`` identifies the rebuild that produced the snapshot and is not
    part of equality, so two aggregations of unchanged inputs compare equal.
    """

    rules: tuple[Rule, ...] = ()
    ignore_patterns: tuple[IgnorePatternSet, ...] = ()
    version: int = field(default=0, compare=False)

    def by_behavior(self, behavior: PermissionBehavior) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.behavior is behavior)

    @property
    def deny_rules(self) -> tuple[Rule, ...]:
        return self.by_behavior(PermissionBehavior.DENY)

    @property
    def allow_rules(self) -> tuple[Rule, ...]:
        return self.by_behavior(PermissionBehavior.ALLOW)

    def from_scope(self, scope: Scope) -> tuple[Rule, ...]:
        return tuple(r for r in self.rules if r.source is scope)
