"""Decision evaluator: resolves one tool invocation against a RuleSet.

Evaluation order:
1. Path safety gate (path-bearing tools)
2. Deny rules, from any scope
3. Ignore patterns (path-bearing tools)
4. Allow rules
5. Escalation: permission mode, then the prompt tool, then the configured
   default behavior, else ``ask``

Modes (applied only at step 5):
- DEFAULT: no opinion
- ACCEPT_EDITS: allow file-editing tools
- PLAN: deny edits, commands and MCP tools
- BYPASS: allow everything
"""

from __future__ import annotations

import logging
import os
from urllib.parse import urlparse

from permgate.permissions.commands import has_unsafe_syntax, split_command
from permgate.permissions.ignore import should_ignore
from permgate.permissions.matching import rule_matches
from permgate.permissions.messages import decision_message
from permgate.permissions.paths import is_valid_path, relative_to_root
from permgate.permissions.prompt import PromptResolver, resolve_via_prompt_tool
from permgate.permissions.reporting import ErrorReporter, LoggingErrorReporter
from permgate.permissions.tools import (
    COMMAND_TOOLS,
    EDIT_TOOLS,
    WEB_TOOLS,
    is_mutating_tool,
    is_path_tool,
)
from permgate.types.config import PermissionMode
from permgate.types.decisions import (
    Decision,
    DecisionReason,
    IgnorePatternReason,
    ModeReason,
    PathTraversalReason,
    RuleReason,
)
from permgate.types.rules import PermissionBehavior, Rule, RuleSet, RuleValue, Scope

logger = logging.getLogger(__name__)


class DecisionEvaluator:
    """Evaluates whether a tool invocation is allowed, denied, or escalated.

    The evaluator holds no mutable state; concurrent evaluations may share
    one instance and one RuleSet snapshot.
    """

    def __init__(
        self,
        prompt_resolver: PromptResolver | None = None,
        *,
        mode: PermissionMode = PermissionMode.DEFAULT,
        default_behavior: PermissionBehavior | None = None,
        prompt_timeout: float | None = None,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self._prompt_resolver = prompt_resolver
        self._mode = mode
        self._default_behavior = default_behavior
        self._prompt_timeout = prompt_timeout
        self._reporter = error_reporter or LoggingErrorReporter()

    @property
    def mode(self) -> PermissionMode:
        return self._mode

    @property
    def prompt_resolver(self) -> PromptResolver | None:
        return self._prompt_resolver

    async def evaluate(
        self,
        tool_name: str,
        content: str,
        rule_set: RuleSet,
        root_dir: str | None = None,
    ) -> Decision | None:
        """Decide one invocation.

        Returns None only when the prompt tool was consulted and produced no
        verdict; callers must treat that like ``ask``.
        """
        path_tool = is_path_tool(tool_name)
        root = root_dir or os.getcwd()

        # 1. Path safety gate; no rule can override it
        if path_tool and not is_valid_path(content, root):
            return self._deny(tool_name, content, PathTraversalReason(path=content))

        match_root = root if path_tool else None

        # Chained commands are checked subcommand by subcommand
        subcommands = split_command(content) if tool_name in COMMAND_TOOLS else None

        # 2. Deny rules, whatever their scope
        deny_targets = (content, *(subcommands or ()))
        for rule in rule_set.deny_rules:
            if any(rule_matches(rule.value, tool_name, t, match_root) for t in deny_targets):
                return self._deny(tool_name, content, RuleReason(rule=rule), rule=rule)

        # 3. Ignore patterns
        if path_tool and should_ignore(content, root, rule_set.ignore_patterns, self._reporter):
            return self._deny(tool_name, content, IgnorePatternReason(path=content))

        # 4. Allow rules
        if tool_name in COMMAND_TOOLS:
            rule = _command_allow_rule(rule_set, tool_name, content, subcommands)
        else:
            rule = next(
                (r for r in rule_set.allow_rules
                 if rule_matches(r.value, tool_name, content, match_root)),
                None,
            )
        if rule is not None:
            reason = RuleReason(rule=rule)
            return Decision(
                behavior=PermissionBehavior.ALLOW,
                rule=rule,
                decision_reason=reason,
                message=decision_message(PermissionBehavior.ALLOW, tool_name, content, reason),
            )

        # 5. Escalation
        return await self._escalate(tool_name, content, root if path_tool else None)

    async def _escalate(
        self, tool_name: str, content: str, root: str | None,
    ) -> Decision | None:
        mode_behavior = self._mode_default(tool_name)
        if mode_behavior is not None:
            return self._from_mode(mode_behavior, tool_name, content)

        if self._prompt_resolver is not None:
            logger.debug("Escalating %s to prompt tool %s", tool_name, self._prompt_resolver.name)
            return await resolve_via_prompt_tool(
                self._prompt_resolver,
                tool_name,
                content,
                timeout=self._prompt_timeout,
                reporter=self._reporter,
            )

        if self._default_behavior in (PermissionBehavior.ALLOW, PermissionBehavior.DENY):
            return self._from_mode(self._default_behavior, tool_name, content)

        return Decision(
            behavior=PermissionBehavior.ASK,
            message=decision_message(PermissionBehavior.ASK, tool_name, content),
            rule_suggestions=suggest_rules(tool_name, content, root),
        )

    def _mode_default(self, tool_name: str) -> PermissionBehavior | None:
        """Mode-based verdict, or None when the mode has no opinion."""
        match self._mode:
            case PermissionMode.BYPASS:
                return PermissionBehavior.ALLOW
            case PermissionMode.PLAN:
                if is_mutating_tool(tool_name):
                    return PermissionBehavior.DENY
                return None
            case PermissionMode.ACCEPT_EDITS:
                if tool_name in EDIT_TOOLS:
                    return PermissionBehavior.ALLOW
                return None
            case _:
                return None

    def _from_mode(
        self, behavior: PermissionBehavior, tool_name: str, content: str,
    ) -> Decision:
        reason = ModeReason(mode=self._mode)
        if behavior is PermissionBehavior.DENY:
            return self._deny(tool_name, content, reason)
        return Decision(
            behavior=behavior,
            decision_reason=reason,
            message=decision_message(behavior, tool_name, content, reason),
        )

    @staticmethod
    def _deny(
        tool_name: str,
        content: str,
        reason: DecisionReason,
        rule: Rule | None = None,
    ) -> Decision:
        return Decision(
            behavior=PermissionBehavior.DENY,
            rule=rule,
            decision_reason=reason,
            message=decision_message(PermissionBehavior.DENY, tool_name, content, reason),
        )


def _command_allow_rule(
    rule_set: RuleSet,
    tool_name: str,
    content: str,
    subcommands: tuple[str, ...] | None,
) -> Rule | None:
    """First allow rule that vouches for a whole command line.

    Whole-tool rules allow anything that passed the deny scan. Content rules
    apply only when the line is parseable, free of substitutions and
    redirections, and every subcommand is covered by some allow rule.
    """
    if subcommands is None or has_unsafe_syntax(content):
        return next(
            (r for r in rule_set.allow_rules
             if r.rule_content is None and rule_matches(r.value, tool_name, content)),
            None,
        )

    covering: list[Rule] = []
    for subcommand in subcommands or (content,):
        rule = next(
            (r for r in rule_set.allow_rules if rule_matches(r.value, tool_name, subcommand)),
            None,
        )
        if rule is None:
            return None
        covering.append(rule)
    return covering[0]


def suggest_rules(tool_name: str, content: str, root_dir: str | None = None) -> tuple[Rule, ...]:
    """Allow rules the UI can offer to persist for an ``ask`` decision."""
    rule_content: str | None = None
    if tool_name in COMMAND_TOOLS:
        command = content.strip()
        rule_content = command or None
    elif is_path_tool(tool_name):
        rel = relative_to_root(content, root_dir) if root_dir else content
        if rel and rel != ".":
            rule_content = rel
    elif tool_name in WEB_TOOLS:
        try:
            host = urlparse(content).hostname
        except ValueError:
            host = None
        if host:
            rule_content = f"domain:{host}"

    return (Rule(
        source=Scope.LOCAL_PROJECT_SETTINGS,
        behavior=PermissionBehavior.ALLOW,
        value=RuleValue(tool_name=tool_name, rule_content=rule_content),
    ),)
