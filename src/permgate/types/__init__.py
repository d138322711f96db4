"""Type definitions for permgate."""

from permgate.types.config import AuditConfig, EngineConfig, PermissionMode, PromptToolConfig
from permgate.types.decisions import (
    Decision,
    DecisionReason,
    IgnorePatternReason,
    ModeReason,
    PathTraversalReason,
    PromptToolReason,
    RuleReason,
)
from permgate.types.rules import (
    SCOPE_PRECEDENCE,
    IgnorePatternSet,
    PermissionBehavior,
    Rule,
    RuleSet,
    RuleValue,
    Scope,
)

__all__ = [
    "AuditConfig",
    "Decision",
    "DecisionReason",
    "EngineConfig",
    "IgnorePatternReason",
    "IgnorePatternSet",
    "ModeReason",
    "PathTraversalReason",
    "PermissionBehavior",
    "PermissionMode",
    "PromptToolConfig",
    "PromptToolReason",
    "Rule",
    "RuleReason",
    "RuleSet",
    "RuleValue",
    "SCOPE_PRECEDENCE",
    "Scope",
]
