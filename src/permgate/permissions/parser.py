"""Parse rule strings such as ``Bash(npm test:*)`` into ``RuleValue`` pairs."""

from __future__ import annotations

from permgate.types.rules import RuleValue


def parse_rule_value(raw: str) -> RuleValue:
    """Split ``ToolName(content)`` into its tool name and verbatim content.

    Never raises. Anything that does not parse cleanly degrades to a rule
    whose tool name is the whole string, which matches no real tool.
    """
    text = raw.strip()
    open_idx = text.find("(")
    if open_idx == -1:
        if ")" in text:
            return RuleValue(tool_name=raw)
        return RuleValue(tool_name=text)

    if not text.endswith(")") or open_idx == 0:
        return RuleValue(tool_name=raw)

    tool_name = text[:open_idx].strip()
    content = text[open_idx + 1:-1]
    if not tool_name or not _balanced(content):
        return RuleValue(tool_name=raw)

    # "Tool()" and "Tool(*)" both cover the whole tool
    if content in ("", "*"):
        return RuleValue(tool_name=tool_name)
    return RuleValue(tool_name=tool_name, rule_content=content)


def format_rule_value(value: RuleValue) -> str:
    """Inverse of :func:`parse_rule_value`."""
    if value.rule_content is None:
        return value.tool_name
    return f"{value.tool_name}({value.rule_content})"


def _balanced(content: str) -> bool:
    depth = 0
    for ch in content:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0
