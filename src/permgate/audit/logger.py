"""AuditLogger: append-only JSONL decision trail with chain integrity."""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from enum import Enum
from pathlib import Path
from typing import Any

from permgate.types.decisions import Decision
from permgate.types.rules import RuleSet


class AuditEventType(Enum):
    """Types of audit events."""

    PERMISSION_DECISION = "permission_decision"
    NO_DECISION = "no_decision"
    RULES_RELOADED = "rules_reloaded"


class AuditLogger:
    """Append-only audit logger with tamper-detection via hash chaining.

    Each event includes a SHA-256 hash computed over the event *without* the
    ``hash`` field, then the hash is stored alongside it.  To verify chain
    integrity, use :meth:`verify_chain` which re-derives each hash and checks
    ``prev_hash`` links.

    The log file handle is kept open for the lifetime of the logger.  Call
    :meth:`close` (or use as a context manager) to flush and release it.
    """

    def __init__(
        self,
        session_id: str,
        *,
        enabled: bool = True,
        log_content: bool = True,
        audit_dir: Path | None = None,
    ) -> None:
        self._enabled = enabled
        self._session_id = session_id
        self._log_content = log_content
        self._prev_hash = "0" * 64  # genesis hash
        self._event_count = 0
        self._handle = None

        if enabled:
            self._audit_dir = audit_dir or (Path.home() / ".permgate" / "audit")
            self._audit_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = self._audit_dir / f"decisions-{session_id}.jsonl"
            self._handle = open(self._log_path, "a")  # noqa: SIM115
        else:
            self._audit_dir = None
            self._log_path = None

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        """Flush and close the underlying file handle."""
        if self._handle is not None:
            self._handle.flush()
            self._handle.close()
            self._handle = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    @property
    def event_count(self) -> int:
        return self._event_count

    @staticmethod
    def _compute_hash(event: dict[str, Any]) -> str:
        """Compute SHA-256 over the event dict *without* the ``hash`` key."""
        payload = {k: v for k, v in event.items() if k != "hash"}
        event_json = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(event_json.encode()).hexdigest()

    def _write_event(self, event_type: AuditEventType, data: dict[str, Any]) -> str | None:
        """Write an audit event. Returns the event_id or None if disabled."""
        if not self._enabled or self._handle is None:
            return None

        event_id = uuid.uuid4().hex[:16]
        event = {
            "event_id": event_id,
            "timestamp": time.time(),
            "event_type": event_type.value,
            "session_id": self._session_id,
            "data": data,
            "prev_hash": self._prev_hash,
        }

        event_hash = self._compute_hash(event)
        event["hash"] = event_hash
        self._prev_hash = event_hash
        self._event_count += 1

        self._handle.write(json.dumps(event, separators=(",", ":"), default=str) + "\n")
        self._handle.flush()

        return event_id

    @staticmethod
    def verify_chain(log_path: Path) -> tuple[bool, list[str]]:
        """Verify the integrity of an audit log file.

        Returns ``(valid, errors)`` where *valid* is ``True`` when the chain
        is intact and *errors* lists human-readable descriptions of any
        problems found.
        """
        errors: list[str] = []
        expected_prev = "0" * 64

        with open(log_path) as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError as e:
                    errors.append(f"Line {lineno}: invalid JSON: {e}")
                    break

                stored_hash = event.get("hash", "")
                if AuditLogger._compute_hash(event) != stored_hash:
                    errors.append(f"Line {lineno}: hash mismatch")
                if event.get("prev_hash") != expected_prev:
                    errors.append(f"Line {lineno}: prev_hash mismatch")
                expected_prev = stored_hash

        return (len(errors) == 0, errors)

    def log_decision(
        self, tool_name: str, content: str, decision: Decision, *, rule_set_version: int,
    ) -> str | None:
        data: dict[str, Any] = {
            "tool": tool_name,
            "rule_set_version": rule_set_version,
            "decision": decision.to_dict(),
        }
        if self._log_content:
            data["content"] = content
        return self._write_event(AuditEventType.PERMISSION_DECISION, data)

    def log_no_decision(
        self, tool_name: str, content: str, *, rule_set_version: int,
    ) -> str | None:
        data: dict[str, Any] = {"tool": tool_name, "rule_set_version": rule_set_version}
        if self._log_content:
            data["content"] = content
        return self._write_event(AuditEventType.NO_DECISION, data)

    def log_rules_reloaded(self, rule_set: RuleSet) -> str | None:
        return self._write_event(AuditEventType.RULES_RELOADED, {
            "version": rule_set.version,
            "rules": len(rule_set.rules),
            "ignore_scopes": [s.scope.value for s in rule_set.ignore_patterns],
        })
