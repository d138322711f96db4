"""Configuration loading (env vars, .env, project TOML)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from permgate.types.config import AuditConfig, EngineConfig, PermissionMode, PromptToolConfig

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

_BEHAVIORS = ("allow", "deny", "ask")


def load_env_config() -> dict[str, Any]:
    """Load engine settings from PERMGATE_* environment variables."""
    config: dict[str, Any] = {}

    if mode := os.environ.get("PERMGATE_MODE"):
        config["mode"] = mode
    if default := os.environ.get("PERMGATE_DEFAULT_BEHAVIOR"):
        config["default_behavior"] = default
    if tool := os.environ.get("PERMGATE_PROMPT_TOOL"):
        config["prompt_tool"] = tool
    if command := os.environ.get("PERMGATE_PROMPT_COMMAND"):
        config["prompt_command"] = command
    if url := os.environ.get("PERMGATE_PROMPT_URL"):
        config["prompt_url"] = url
    if timeout := os.environ.get("PERMGATE_PROMPT_TIMEOUT"):
        config["prompt_timeout"] = timeout
    if policy := os.environ.get("PERMGATE_POLICY_SETTINGS"):
        config["policy_settings"] = policy
    if audit_dir := os.environ.get("PERMGATE_AUDIT_DIR"):
        config["audit_dir"] = audit_dir
    if audit := os.environ.get("PERMGATE_AUDIT"):
        config["audit"] = audit

    return config


def load_toml_config(cwd: str | None = None) -> dict[str, Any]:
    """Load the ``[engine]`` table from .permgate/config.toml, if present."""
    search_dirs = []
    if cwd:
        search_dirs.append(Path(cwd))
    search_dirs.append(Path.cwd())
    search_dirs.append(Path.home())

    for d in search_dirs:
        toml_path = d / ".permgate" / "config.toml"
        if not toml_path.exists():
            continue
        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Cannot load %s: %s", toml_path, exc)
            continue
        engine = data.get("engine", {})
        return engine if isinstance(engine, dict) else {}
    return {}


def _parse_mode(value: Any) -> PermissionMode:
    try:
        return PermissionMode(str(value))
    except ValueError:
        logger.warning("Unknown permission mode '%s', using 'default'", value)
        return PermissionMode.DEFAULT


def _parse_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    logger.warning("Invalid boolean '%s', using %s", value, fallback)
    return fallback


def _parse_timeout(value: Any, fallback: float) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid prompt tool timeout '%s', using %ss", value, fallback)
        return fallback
    return timeout if timeout > 0 else fallback


def build_engine_config(raw: dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a merged dict of settings."""
    default_behavior = raw.get("default_behavior")
    if default_behavior is not None and default_behavior not in _BEHAVIORS:
        logger.warning("Ignoring unknown default behavior '%s'", default_behavior)
        default_behavior = None

    prompt_tool = None
    command = raw.get("prompt_command")
    url = raw.get("prompt_url")
    if command or url:
        prompt_tool = PromptToolConfig(
            name=str(raw.get("prompt_tool") or "permission_prompt"),
            command=command,
            url=url,
            timeout=_parse_timeout(raw.get("prompt_timeout", 60.0), 60.0),
        )
    elif raw.get("prompt_tool"):
        logger.warning(
            "Prompt tool '%s' configured without a command or URL; ignoring it",
            raw["prompt_tool"],
        )

    audit_dir = raw.get("audit_dir")
    audit = AuditConfig(
        enabled=_parse_bool(raw.get("audit", bool(audit_dir)), bool(audit_dir)),
        audit_dir=audit_dir,
        log_content=_parse_bool(raw.get("audit_log_content", True), True),
    )

    return EngineConfig(
        mode=_parse_mode(raw.get("mode", "default")),
        default_behavior=default_behavior,
        prompt_tool=prompt_tool,
        audit=audit,
        policy_settings_path=raw.get("policy_settings"),
    )


def load_engine_config(cwd: str | None = None) -> EngineConfig:
    """Resolve engine configuration: environment overrides project TOML."""
    merged = load_toml_config(cwd)
    merged.update(load_env_config())
    return build_engine_config(merged)
