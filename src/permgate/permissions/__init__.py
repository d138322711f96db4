"""Rule parsing, matching, aggregation and decision evaluation."""

from permgate.permissions.aggregator import (
    RuleAggregator,
    ScopeProvider,
    ScopeReadError,
    ScopeSettings,
    StaticScopeProvider,
    build_rule_set,
)
from permgate.permissions.commands import has_unsafe_syntax, split_command
from permgate.permissions.evaluator import DecisionEvaluator, suggest_rules
from permgate.permissions.ignore import get_unignored_patterns, should_ignore
from permgate.permissions.matching import PatternError, rule_matches
from permgate.permissions.parser import format_rule_value, parse_rule_value
from permgate.permissions.paths import is_valid_path
from permgate.permissions.prompt import (
    CommandPromptResolver,
    HttpPromptResolver,
    PromptResolver,
    resolve_via_prompt_tool,
)
from permgate.permissions.reporting import ErrorReporter, LoggingErrorReporter
from permgate.permissions.settings import SettingsFileProvider

__all__ = [
    "CommandPromptResolver",
    "DecisionEvaluator",
    "ErrorReporter",
    "HttpPromptResolver",
    "LoggingErrorReporter",
    "PatternError",
    "PromptResolver",
    "RuleAggregator",
    "ScopeProvider",
    "ScopeReadError",
    "ScopeSettings",
    "SettingsFileProvider",
    "StaticScopeProvider",
    "build_rule_set",
    "format_rule_value",
    "get_unignored_patterns",
    "has_unsafe_syntax",
    "is_valid_path",
    "parse_rule_value",
    "resolve_via_prompt_tool",
    "rule_matches",
    "should_ignore",
    "split_command",
    "suggest_rules",
]
