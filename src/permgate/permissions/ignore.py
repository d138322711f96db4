"""Ignore-pattern matching for path-bearing tools."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Iterable

from permgate.permissions.matching import PatternError, compile_ignore_spec
from permgate.permissions.paths import relative_to_root
from permgate.permissions.reporting import ErrorReporter, LoggingErrorReporter
from permgate.types.rules import IgnorePatternSet, PermissionBehavior, RuleSet, Scope

logger = logging.getLogger(__name__)

# Cache directories excluded wherever they appear in a path
BUILTIN_IGNORED_DIRS = frozenset({
    "__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache",
})


def _is_dotfile(path: str) -> bool:
    if path == ".":
        return False
    name = posixpath.basename(path.replace("\\", "/").rstrip("/"))
    return name.startswith(".") and name not in (".", "..")


def _in_cache_dir(path: str) -> bool:
    parts = path.replace("\\", "/").split("/")
    return any(part in BUILTIN_IGNORED_DIRS for part in parts)


def should_ignore(
    path: str,
    root_dir: str,
    patterns_by_scope: Iterable[IgnorePatternSet],
    reporter: ErrorReporter | None = None,
) -> bool:
    """Return True if *path* is excluded from path-bearing tools.

    Built-in exclusions (dotfiles, cache directories) apply first. Then each
    scope's patterns are tested against the path relative to that scope's
    base directory; the first scope that matches wins. A scope whose patterns
    cannot be compiled is reported and skipped for this check only.
    """
    if _is_dotfile(path):
        return True
    if _in_cache_dir(path):
        return True

    absolute = os.path.abspath(os.path.join(root_dir, path))
    for pattern_set in patterns_by_scope:
        if not pattern_set.patterns:
            continue
        # A relative base directory is taken from the project root
        base_dir = os.path.join(root_dir, pattern_set.base_dir)
        rel = relative_to_root(absolute, base_dir)
        if rel is None or rel == ".":
            continue
        try:
            if compile_ignore_spec(pattern_set.patterns).match(rel):
                logger.debug("%s ignored by %s patterns", path, pattern_set.scope.value)
                return True
        except PatternError as exc:
            (reporter or LoggingErrorReporter()).report(exc, {
                "scope": pattern_set.scope.value,
                "path": path,
            })
    return False


def get_unignored_patterns(
    patterns: Iterable[str],
    rule_set: RuleSet,
    tool_name: str,
) -> list[str]:
    """Drop patterns already covered by a local-settings deny rule for *tool_name*."""
    covered = {
        rule.rule_content
        for rule in rule_set.by_behavior(PermissionBehavior.DENY)
        if rule.source is Scope.LOCAL_PROJECT_SETTINGS
        and rule.tool_name == tool_name
        and rule.rule_content is not None
    }
    return [p for p in patterns if p not in covered]
