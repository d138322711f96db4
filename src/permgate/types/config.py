"""Configuration types for permgate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PermissionMode(Enum):
    """Session-wide default posture, applied only when no rule matched."""

    DEFAULT = "default"  # Escalate to the prompt tool or ask
    ACCEPT_EDITS = "accept_edits"  # Auto-approve file edits
    PLAN = "plan"  # Read-only: deny edits, commands and MCP tools
    BYPASS = "bypass"  # Auto-approve everything not denied by a rule


@dataclass(frozen=True, slots=True)
class PromptToolConfig:
    """How to reach the external permission-prompt tool."""

    name: str
    command: str | None = None  # Shell command speaking JSON on stdin/stdout
    url: str | None = None  # HTTP endpoint accepting a JSON POST
    timeout: float = 60.0


@dataclass(frozen=True, slots=True)
class AuditConfig:
    """Configuration for the decision audit log."""

    enabled: bool = False
    audit_dir: str | None = None
    log_content: bool = True


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Resolved engine configuration."""

    mode: PermissionMode = PermissionMode.DEFAULT
    default_behavior: str | None = None  # "allow" | "deny" | "ask"
    prompt_tool: PromptToolConfig | None = None
    audit: AuditConfig = field(default_factory=AuditConfig)
    policy_settings_path: str | None = None
