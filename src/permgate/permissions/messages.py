"""Human-readable text for invocations and decisions."""

from __future__ import annotations

from permgate.permissions.tools import COMMAND_TOOLS, PATH_TOOLS, WEB_TOOLS, is_mcp_tool
from permgate.types.decisions import (
    IgnorePatternReason,
    ModeReason,
    PathTraversalReason,
    PromptToolReason,
    RuleReason,
)
from permgate.types.rules import PermissionBehavior

_MAX_CONTENT = 80


def _truncate(text: str) -> str:
    if len(text) > _MAX_CONTENT:
        return text[: _MAX_CONTENT - 3] + "..."
    return text


def describe_invocation(tool_name: str, content: str) -> str:
    """Build a one-line description of a tool invocation."""
    if tool_name in COMMAND_TOOLS and content:
        return f"Run command: {_truncate(content)}"
    if tool_name in PATH_TOOLS:
        verb = {
            "Read": "Read", "NotebookRead": "Read", "LS": "List",
            "Glob": "Search files in", "Grep": "Search content in",
        }.get(tool_name, "Edit")
        return f"{verb} {content or '.'}"
    if tool_name in WEB_TOOLS and content:
        return f"Fetch URL: {_truncate(content)}"
    if is_mcp_tool(tool_name):
        parts = tool_name.split("__", 2)
        short = parts[-1] if len(parts) > 1 else tool_name
        return f"MCP tool: {short}"
    if content:
        return f"{tool_name}({_truncate(content)})"
    return tool_name


def _subject(tool_name: str, content: str) -> str:
    if not content:
        return tool_name
    if tool_name in COMMAND_TOOLS:
        return f"{tool_name} with command {_truncate(content)}"
    if tool_name in PATH_TOOLS:
        return f"{tool_name} on {_truncate(content)}"
    return f"{tool_name} with {_truncate(content)}"


def decision_message(
    behavior: PermissionBehavior,
    tool_name: str,
    content: str,
    reason: object | None = None,
) -> str:
    """Message shown to the model and the user for a decision."""
    subject = _subject(tool_name, content)
    if behavior is PermissionBehavior.ALLOW:
        return f"Permission to use {subject} has been granted."
    if behavior is PermissionBehavior.ASK:
        return f"Permission to use {subject} has not been granted yet."

    match reason:
        case PathTraversalReason(path=path):
            return f"Permission to use {tool_name} denied: {path} is outside the project directory."
        case IgnorePatternReason(path=path):
            return f"Permission to use {tool_name} denied: {path} is excluded by an ignore pattern."
        case RuleReason(rule=rule):
            return f"Permission to use {subject} has been denied by a {rule.source.value} rule."
        case PromptToolReason(tool_name=prompt_tool):
            return f"Permission to use {subject} has been denied by {prompt_tool}."
        case ModeReason(mode=mode):
            return f"Permission to use {subject} is not available in {mode.value} mode."
        case _:
            return f"Permission to use {subject} has been denied."
