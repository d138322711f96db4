"""Settings-file scope provider.

Each scope maps to one settings file (TOML, YAML or JSON) with a
``permissions`` table::

    [permissions]
    allow = ["Bash(npm test:*)", "Read(src/**)"]
    deny = ["Bash(rm -rf:*)"]
    ignore_patterns = ["*.log", "build/"]

Legacy flat keys (``allowedTools``, ``deniedTools``, ``ignorePatterns``) are
reported with a migration warning and otherwise ignored.
"""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from permgate.permissions.aggregator import ScopeReadError, ScopeSettings
from permgate.types.rules import Scope

logger = logging.getLogger(__name__)

SETTINGS_DIR = ".permgate"
_SUFFIXES = (".toml", ".yaml", ".yml", ".json")

DEPRECATED_KEYS: dict[str, str] = {
    "allowedTools": "permissions.allow",
    "deniedTools": "permissions.deny",
    "ignorePatterns": "permissions.ignore_patterns",
}

DEFAULT_POLICY_DIR = Path("/etc/permgate")


def find_deprecated_keys(raw: Mapping[str, Any]) -> list[str]:
    """Return the legacy flat keys present in a parsed settings document."""
    return [key for key in DEPRECATED_KEYS if key in raw]


def _first_existing(stem: Path) -> Path | None:
    for suffix in _SUFFIXES:
        candidate = stem.with_name(stem.name + suffix)
        if candidate.exists():
            return candidate
    return None


def settings_stems(
    project_root: str | Path,
    *,
    home: str | Path | None = None,
    policy_path: str | Path | None = None,
) -> dict[Scope, Path]:
    """Settings file location per scope, without suffix (or exact for policy)."""
    root = Path(project_root)
    home_dir = Path(home) if home is not None else Path.home()
    policy = Path(policy_path) if policy_path else DEFAULT_POLICY_DIR / "managed-settings"
    return {
        Scope.LOCAL_PROJECT_SETTINGS: root / SETTINGS_DIR / "settings.local",
        Scope.PROJECT_SETTINGS: root / SETTINGS_DIR / "settings",
        Scope.POLICY_SETTINGS: policy,
        Scope.USER_SETTINGS: home_dir / SETTINGS_DIR / "settings",
    }


def parse_settings_file(path: Path) -> dict[str, Any]:
    """Parse a TOML, YAML or JSON settings file. Raises ScopeReadError."""
    suffix = path.suffix.lower()
    try:
        text = path.read_text()
    except OSError as exc:
        raise ScopeReadError(f"Cannot read settings file {path}: {exc}") from exc

    try:
        if suffix == ".toml":
            data = tomllib.loads(text)
        elif suffix in (".yml", ".yaml"):
            data = yaml.safe_load(text) or {}
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ScopeReadError(f"Unsupported settings file extension: {path}")
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ScopeReadError(f"Failed to parse settings file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ScopeReadError(f"Settings file {path} must contain a table at top level")
    return data


def _string_list(value: Any, key: str, path: Path) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, list):
        logger.warning("Ignoring %s in %s: expected a list of strings", key, path)
        return ()
    items = []
    for item in value:
        if isinstance(item, str):
            items.append(item)
        else:
            logger.warning("Skipping non-string entry %r in %s of %s", item, key, path)
    return tuple(items)


def settings_from_document(
    raw: Mapping[str, Any],
    path: Path,
    base_dir: str,
    warned: set[tuple[str, str]] | None = None,
) -> ScopeSettings:
    """Extract ScopeSettings from a parsed settings document.

    Deprecated keys are warned about once per ``(path, key)`` recorded in
    *warned*; without it every call warns.
    """
    for key in find_deprecated_keys(raw):
        if warned is not None:
            if (str(path), key) in warned:
                continue
            warned.add((str(path), key))
        logger.warning(
            "%s uses deprecated key '%s'; move these entries to '%s'",
            path, key, DEPRECATED_KEYS[key],
        )

    permissions = raw.get("permissions", {})
    if not isinstance(permissions, dict):
        logger.warning("Ignoring non-table 'permissions' in %s", path)
        permissions = {}

    return ScopeSettings(
        allow=_string_list(permissions.get("allow"), "permissions.allow", path),
        deny=_string_list(permissions.get("deny"), "permissions.deny", path),
        ignore_patterns=_string_list(
            permissions.get("ignore_patterns"), "permissions.ignore_patterns", path,
        ),
        base_dir=base_dir,
    )


class SettingsFileProvider:
    """Reads each scope's rules from its settings file on every call.

    *overrides* supplies scopes that do not come from files, typically the
    CLI-argument scope.
    """

    def __init__(
        self,
        project_root: str | Path,
        *,
        home: str | Path | None = None,
        policy_path: str | Path | None = None,
        overrides: Mapping[Scope, ScopeSettings] | None = None,
    ) -> None:
        self._root = Path(project_root).resolve()
        self._home = Path(home) if home is not None else Path.home()
        self._stems = settings_stems(self._root, home=self._home, policy_path=policy_path)
        self._overrides = dict(overrides or {})
        # (path, key) pairs already warned about
        self._warned: set[tuple[str, str]] = set()

    @property
    def project_root(self) -> Path:
        return self._root

    def path_for(self, scope: Scope) -> Path | None:
        """The settings file currently backing *scope*, if one exists."""
        stem = self._stems.get(scope)
        if stem is None:
            return None
        if stem.suffix.lower() in _SUFFIXES and stem.exists():
            return stem
        return _first_existing(stem)

    async def read_scope(self, scope: Scope) -> ScopeSettings | None:
        if scope in self._overrides:
            return self._overrides[scope]
        path = self.path_for(scope)
        if path is None:
            return None
        raw = parse_settings_file(path)
        logger.debug("Loaded %s settings from %s", scope.value, path)
        # Patterns from every file scope apply to the project being checked
        return settings_from_document(raw, path, str(self._root), self._warned)

