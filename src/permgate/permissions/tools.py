"""Tool catalogue: which tools carry paths, edit files, run commands."""

from __future__ import annotations

from typing import Any

# Tools whose invocation content is a filesystem path
PATH_TOOLS = frozenset({
    "Read", "Write", "Edit", "MultiEdit", "NotebookRead", "NotebookEdit",
    "Glob", "Grep", "LS",
})

# Path tools that only read
READ_ONLY_TOOLS = frozenset({"Read", "NotebookRead", "Glob", "Grep", "LS"})

# Path tools that modify files (auto-approved in ACCEPT_EDITS mode)
EDIT_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})

# Tools whose invocation content is a shell command
COMMAND_TOOLS = frozenset({"Bash"})

# Tools whose invocation content is a URL
WEB_TOOLS = frozenset({"WebFetch"})

MCP_PREFIX = "mcp__"

# Argument keys holding the invocation content, by tool kind
_PATH_KEYS = ("file_path", "notebook_path", "path")


def is_path_tool(tool_name: str) -> bool:
    return tool_name in PATH_TOOLS


def is_mcp_tool(tool_name: str) -> bool:
    return tool_name.startswith(MCP_PREFIX)


def mcp_server_of(tool_name: str) -> str | None:
    """Return ``mcp__server`` for ``mcp__server__tool``, else None."""
    if not is_mcp_tool(tool_name):
        return None
    parts = tool_name.split("__", 2)
    if len(parts) < 3 or not parts[1]:
        return None
    return f"{MCP_PREFIX}{parts[1]}"


def is_mutating_tool(tool_name: str) -> bool:
    """True for tools denied in PLAN mode."""
    return tool_name in EDIT_TOOLS or tool_name in COMMAND_TOOLS or is_mcp_tool(tool_name)


def extract_content(tool_name: str, args: dict[str, Any]) -> str:
    """Pull the permission-relevant content out of raw tool arguments.

    Path tools yield the path, command tools the command, web tools the URL.
    Search tools without an explicit path default to ``"."``.
    """
    if tool_name in COMMAND_TOOLS:
        return str(args.get("command", ""))
    if tool_name in WEB_TOOLS:
        return str(args.get("url", ""))
    if tool_name in PATH_TOOLS:
        for key in _PATH_KEYS:
            value = args.get(key)
            if value:
                return str(value)
        return "."
    if "content" in args:
        return str(args["content"])
    return ""
