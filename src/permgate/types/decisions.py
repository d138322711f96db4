"""Decision and decision-reason types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from permgate.types.config import PermissionMode
from permgate.types.rules import PermissionBehavior, Rule


@dataclass(frozen=True, slots=True)
class RuleReason:
    """A static rule decided the invocation."""

    rule: Rule
    type: Literal["rule"] = "rule"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "rule": self.rule.to_dict()}


@dataclass(frozen=True, slots=True)
class PromptToolReason:
    """The external permission-prompt tool decided the invocation."""

    tool_name: str
    tool_result: dict[str, Any] = field(default_factory=dict)
    type: Literal["permissionPromptTool"] = "permissionPromptTool"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "toolName": self.tool_name,
            "toolResult": dict(self.tool_result),
        }


@dataclass(frozen=True, slots=True)
class PathTraversalReason:
    """The path escaped the project root or was otherwise unsafe."""

    path: str
    type: Literal["path-traversal"] = "path-traversal"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "path": self.path}


@dataclass(frozen=True, slots=True)
class IgnorePatternReason:
    """The path is excluded by a built-in or configured ignore pattern."""

    path: str
    type: Literal["ignore-pattern"] = "ignore-pattern"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "path": self.path}


@dataclass(frozen=True, slots=True)
class ModeReason:
    """No rule matched; the permission mode or default behavior decided."""

    mode: PermissionMode
    type: Literal["mode"] = "mode"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "mode": self.mode.value}


DecisionReason = Union[
    RuleReason,
    PromptToolReason,
    PathTraversalReason,
    IgnorePatternReason,
    ModeReason,
]


@dataclass(frozen=True, slots=True)
class Decision:
    """Terminal verdict for one tool invocation.

    ``rule_suggestions`` holds allow rules the UI may offer when the decision
    is ``ask``. It is always ``None`` for a denial from the prompt tool.
    """

    behavior: PermissionBehavior
    rule: Rule | None = None
    decision_reason: DecisionReason | None = None
    message: str | None = None
    rule_suggestions: tuple[Rule, ...] | None = None
    updated_input: dict[str, Any] | None = None

    @property
    def allowed(self) -> bool:
        return self.behavior is PermissionBehavior.ALLOW

    @property
    def denied(self) -> bool:
        return self.behavior is PermissionBehavior.DENY

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"behavior": self.behavior.value}
        if self.rule is not None:
            data["rule"] = self.rule.to_dict()
        if self.decision_reason is not None:
            data["decisionReason"] = self.decision_reason.to_dict()
        if self.message is not None:
            data["message"] = self.message
        if self.rule_suggestions is not None:
            data["ruleSuggestions"] = [r.to_dict() for r in self.rule_suggestions]
        elif self.denied and isinstance(self.decision_reason, PromptToolReason):
            # Suggestions are withheld after the prompt tool refused
            data["ruleSuggestions"] = None
        if self.updated_input is not None:
            data["updatedInput"] = dict(self.updated_input)
        return data
