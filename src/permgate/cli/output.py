"""Rendering of decisions and rule sets for the terminal."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from permgate.permissions.messages import describe_invocation
from permgate.permissions.parser import format_rule_value
from permgate.types.decisions import Decision
from permgate.types.rules import PermissionBehavior, RuleSet

STYLE_ALLOW = "bold #34d399"  # green
STYLE_DENY = "bold #f87171"  # red
STYLE_ASK = "bold #fbbf24"  # amber
STYLE_DETAIL = "#94a3b8"  # slate
STYLE_MUTED = "#7c7c8a"

_BEHAVIOR_STYLES = {
    PermissionBehavior.ALLOW: STYLE_ALLOW,
    PermissionBehavior.DENY: STYLE_DENY,
    PermissionBehavior.ASK: STYLE_ASK,
}


def exit_code(decision: Decision | None) -> int:
    """0 for allow, 1 for deny, 2 when the caller still has to ask."""
    if decision is None:
        return 2
    if decision.behavior is PermissionBehavior.ALLOW:
        return 0
    if decision.behavior is PermissionBehavior.DENY:
        return 1
    return 2


def decision_to_json(decision: Decision | None, tool_name: str, content: str) -> str:
    payload: dict[str, Any] = {"tool": tool_name, "content": content}
    payload["decision"] = decision.to_dict() if decision is not None else None
    return json.dumps(payload, indent=2)


def print_decision(
    decision: Decision | None,
    tool_name: str,
    content: str,
    console: Console | None = None,
) -> None:
    """Show a decision as a coloured panel."""
    console = console or Console()
    behavior = decision.behavior if decision is not None else PermissionBehavior.ASK
    style = _BEHAVIOR_STYLES[behavior]

    body = Text()
    body.append(describe_invocation(tool_name, content), style=STYLE_DETAIL)
    if decision is None:
        body.append("\nNo decision from the prompt tool.", style=STYLE_MUTED)
    else:
        if decision.message:
            body.append(f"\n{decision.message}")
        if decision.decision_reason is not None:
            reason = decision.decision_reason.to_dict()
            body.append(f"\nreason: {reason['type']}", style=STYLE_MUTED)
        for rule in decision.rule_suggestions or ():
            body.append(f"\nsuggest: {format_rule_value(rule.value)}", style=STYLE_MUTED)

    console.print(Panel(
        body,
        title=Text(f" {behavior.value.upper()} ", style=style),
        border_style=style.replace("bold ", ""),
        expand=False,
        padding=(0, 1),
    ))


def rule_set_to_json(rule_set: RuleSet) -> str:
    return json.dumps({
        "version": rule_set.version,
        "rules": [rule.to_dict() for rule in rule_set.rules],
        "ignorePatterns": [
            {"scope": s.scope.value, "baseDir": s.base_dir, "patterns": list(s.patterns)}
            for s in rule_set.ignore_patterns
        ],
    }, indent=2)


def print_rule_set(rule_set: RuleSet, console: Console | None = None) -> None:
    """Show aggregated rules in evaluation order."""
    console = console or Console()
    if not rule_set.rules and not rule_set.ignore_patterns:
        console.print("[dim]No permission rules configured.[/dim]")
        return

    table = Table(title=f"Permission rules (v{rule_set.version})")
    table.add_column("Scope", style="cyan")
    table.add_column("Behavior")
    table.add_column("Rule")
    for rule in rule_set.rules:
        table.add_row(
            rule.source.value,
            Text(rule.behavior.value, style=_BEHAVIOR_STYLES[rule.behavior]),
            format_rule_value(rule.value),
        )
    for pattern_set in rule_set.ignore_patterns:
        for pattern in pattern_set.patterns:
            table.add_row(pattern_set.scope.value, Text("ignore", style=STYLE_MUTED), pattern)
    console.print(table)
