"""Rule-content matching for commands, paths and URLs.

Content semantics, shared by every tool:

- no content: the rule covers every invocation of the tool
- ``*``: matches anything
- ``prefix:*``: prefix match at a word boundary (``npm test:*`` matches
  ``npm test --watch`` but not ``npm testing``)
- anything else: exact, case-sensitive match

Path-bearing tools interpret content as a gitignore-style glob evaluated
against the path relative to the project root. Web tools additionally accept
``domain:<host>``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from permgate.permissions.paths import relative_to_root
from permgate.permissions.tools import WEB_TOOLS, is_path_tool, mcp_server_of
from permgate.types.rules import RuleValue

logger = logging.getLogger(__name__)

PREFIX_SUFFIX = ":*"
DOMAIN_PREFIX = "domain:"


class PatternError(ValueError):
    """A glob or ignore pattern could not be compiled."""


# ---------------------------------------------------------------------------
# Glob translation
# ---------------------------------------------------------------------------


def translate_glob(pattern: str) -> str:
    """Translate a glob into a regex fragment.

    ``*`` and ``?`` never cross ``/``; ``**`` matches across directories and
    ``**/`` matches zero or more leading directories. ``[...]`` classes accept
    ``!`` or ``^`` for negation.
    """
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    parts.append("(?:.*/)?")
                    i += 1
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise PatternError(f"Unterminated character class in {pattern!r}")
            body = pattern[i + 1:j]
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            parts.append("[" + body.replace("\\", "\\\\") + "]")
            i = j + 1
            continue
        elif c == "\\" and i + 1 < n:
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        else:
            parts.append(re.escape(c))
        i += 1
    return "".join(parts)


@dataclass(frozen=True, slots=True)
class _PathPattern:
    regex: re.Pattern[str]
    negated: bool = False


def _compile_path_pattern(line: str) -> _PathPattern | None:
    """Compile one gitignore-style line; None for blanks and comments."""
    text = line.rstrip()
    if not text or text.startswith("#"):
        return None

    negated = text.startswith("!")
    if negated:
        text = text[1:]

    # A trailing slash names a directory; its contents match either way
    text = text.rstrip("/")
    if not text:
        return None

    anchored = text.startswith("/") or "/" in text
    text = text.lstrip("/")

    body = translate_glob(text)
    lead = "" if anchored else "(?:.*/)?"
    try:
        regex = re.compile(f"^{lead}{body}(?:/.*)?$")
    except re.error as exc:
        raise PatternError(f"Invalid pattern {line!r}: {exc}") from exc
    return _PathPattern(regex=regex, negated=negated)


class IgnoreSpec:
    """Compiled set of gitignore-style patterns. Last matching pattern wins."""

    def __init__(self, patterns: tuple[str, ...]) -> None:
        self._patterns = patterns
        compiled = (_compile_path_pattern(p) for p in patterns)
        self._compiled = tuple(c for c in compiled if c is not None)

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def match(self, rel_path: str) -> bool:
        ignored = False
        for pattern in self._compiled:
            if pattern.regex.match(rel_path):
                ignored = not pattern.negated
        return ignored


@lru_cache(maxsize=256)
def compile_ignore_spec(patterns: tuple[str, ...]) -> IgnoreSpec:
    """Compile (and cache) an :class:`IgnoreSpec`. Raises PatternError."""
    return IgnoreSpec(patterns)


def path_pattern_matches(pattern: str, rel_path: str) -> bool:
    """Match one path glob against a root-relative POSIX path."""
    if pattern.endswith(PREFIX_SUFFIX):
        pattern = pattern[: -len(PREFIX_SUFFIX)] or "*"
    if pattern == "*":
        return True
    return compile_ignore_spec((pattern,)).match(rel_path)


# ---------------------------------------------------------------------------
# Content matching
# ---------------------------------------------------------------------------


def content_matches(rule_content: str, content: str) -> bool:
    """Exact or ``prefix:*`` match for commands and generic tools."""
    if rule_content == "*":
        return True
    if rule_content.endswith(PREFIX_SUFFIX):
        prefix = rule_content[: -len(PREFIX_SUFFIX)]
        if not prefix:
            return True
        return content == prefix or content.startswith(prefix + " ")
    return content == rule_content


def _url_matches(rule_content: str, url: str) -> bool:
    if rule_content.startswith(DOMAIN_PREFIX):
        host = rule_content[len(DOMAIN_PREFIX):]
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            return False
        return hostname is not None and hostname == host.lower()
    return content_matches(rule_content, url)


def tool_name_matches(rule: RuleValue, tool_name: str) -> bool:
    """Exact tool match, plus server-wide rules for MCP tools."""
    if rule.tool_name == tool_name:
        return True
    server = mcp_server_of(tool_name)
    if server is None:
        return False
    if rule.tool_name == f"{server}__*":
        return True
    return rule.tool_name == server and rule.rule_content is None


def rule_matches(
    rule: RuleValue,
    tool_name: str,
    content: str,
    root_dir: str | None = None,
) -> bool:
    """Return True if *rule* covers the invocation ``tool_name(content)``."""
    if not tool_name_matches(rule, tool_name):
        return False
    if rule.rule_content is None:
        return True

    if is_path_tool(tool_name):
        rel = content if root_dir is None else relative_to_root(content, root_dir)
        if rel is None:
            return False
        try:
            return path_pattern_matches(rule.rule_content, rel)
        except PatternError as exc:
            logger.warning("Rule %s(%s) never matches: %s", rule.tool_name, rule.rule_content, exc)
            return False

    if tool_name in WEB_TOOLS:
        return _url_matches(rule.rule_content, content)

    return content_matches(rule.rule_content, content.strip())
