"""Path safety: keep path-bearing tools inside the project root."""

from __future__ import annotations

import os
import posixpath
import re

# Relative paths whose first segment is a bare wildcard
_WILDCARD_ROOT = re.compile(r"^\*\*?(?:/|$)")


def _resolve(candidate: str, root_dir: str) -> tuple[str, str]:
    """Lexically resolve *candidate* against *root_dir*.

    Symlinks are not followed; the check is about what the path says.
    """
    root = os.path.abspath(root_dir)
    resolved = os.path.normpath(os.path.join(root, candidate))
    return root, resolved


def is_valid_path(candidate: str, root_dir: str) -> bool:
    """Return True if *candidate* stays within *root_dir*."""
    if candidate == ".":
        return True
    if candidate.startswith("~"):
        return False
    if "\x00" in candidate or "\x00" in root_dir:
        return False

    root, resolved = _resolve(candidate, root_dir)
    try:
        rel = os.path.relpath(resolved, root)
    except ValueError:
        # Different drive on Windows
        return False
    if rel.startswith(".."):
        return False
    if os.path.isabs(rel):
        return False
    return not _WILDCARD_ROOT.match(rel.replace(os.sep, "/"))


def relative_to_root(candidate: str, root_dir: str) -> str | None:
    """POSIX path of *candidate* relative to *root_dir*, or None if it escapes.

    The root itself is returned as ``"."``.
    """
    if "\x00" in candidate or "\x00" in root_dir:
        return None
    root, resolved = _resolve(candidate, root_dir)
    try:
        rel = os.path.relpath(resolved, root)
    except ValueError:
        return None
    if rel.startswith("..") or os.path.isabs(rel):
        return None
    return posixpath.normpath(rel.replace(os.sep, "/"))
