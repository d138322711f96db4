"""Permission-prompt fallback: consult an external tool when no rule decides.

The prompt tool receives ``{"tool_name": ..., "input": ...}`` and answers
with ``{"behavior": "allow" | "deny", ...}``. Only those two verdicts produce
a decision; anything else, an error or a timeout produces none, and the
caller falls back to its own default. A failure is never turned into an
allow. Cancellation always propagates.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import httpx

from permgate.permissions.messages import decision_message
from permgate.permissions.reporting import ErrorReporter, LoggingErrorReporter
from permgate.types.decisions import Decision, PromptToolReason
from permgate.types.rules import PermissionBehavior

logger = logging.getLogger(__name__)


class PromptToolError(RuntimeError):
    """The prompt tool ran but its answer could not be used."""


@runtime_checkable
class PromptResolver(Protocol):
    """Capability interface for the external permission-prompt tool."""

    name: str

    async def resolve(self, tool_name: str, content: str) -> Mapping[str, Any] | None:
        """Return the tool's raw verdict, or None if it gave none."""
        ...


def format_prompt_result(result: Mapping[str, Any], prompt_tool: str, tool_name: str,
                         content: str) -> Decision | None:
    """Wrap a raw prompt-tool verdict into a Decision."""
    raw = dict(result)
    behavior = raw.get("behavior")
    reason = PromptToolReason(tool_name=prompt_tool, tool_result=raw)

    if behavior == "allow":
        updated = raw.get("updatedInput")
        return Decision(
            behavior=PermissionBehavior.ALLOW,
            decision_reason=reason,
            message=decision_message(PermissionBehavior.ALLOW, tool_name, content, reason),
            updated_input=dict(updated) if isinstance(updated, Mapping) else None,
        )
    if behavior == "deny":
        message = raw.get("message")
        return Decision(
            behavior=PermissionBehavior.DENY,
            decision_reason=reason,
            message=message if isinstance(message, str) and message else decision_message(
                PermissionBehavior.DENY, tool_name, content, reason,
            ),
            rule_suggestions=None,
        )

    logger.warning("Prompt tool %s returned unrecognized behavior %r", prompt_tool, behavior)
    return None


async def resolve_via_prompt_tool(
    resolver: PromptResolver,
    tool_name: str,
    content: str,
    *,
    timeout: float | None = None,
    reporter: ErrorReporter | None = None,
) -> Decision | None:
    """Ask *resolver* for a verdict and wrap it into a Decision.

    Returns None when the tool fails, times out, or answers with anything
    other than allow/deny.
    """
    try:
        if timeout is not None:
            result = await asyncio.wait_for(resolver.resolve(tool_name, content), timeout)
        else:
            result = await resolver.resolve(tool_name, content)
    except TimeoutError:
        logger.warning("Prompt tool %s timed out after %ss", resolver.name, timeout)
        return None
    except Exception as exc:
        (reporter or LoggingErrorReporter()).report(exc, {
            "prompt_tool": resolver.name,
            "tool_name": tool_name,
        })
        return None

    if not isinstance(result, Mapping):
        logger.warning("Prompt tool %s produced no verdict", resolver.name)
        return None
    return format_prompt_result(result, resolver.name, tool_name, content)


def _request_payload(tool_name: str, content: str) -> dict[str, Any]:
    return {"tool_name": tool_name, "input": content}


def _parse_verdict(text: str, source: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PromptToolError(f"{source} returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise PromptToolError(f"{source} returned {type(data).__name__}, expected an object")
    return data


class CommandPromptResolver:
    """Runs a shell command as the prompt tool.

    The request is written to stdin as JSON; the verdict is read from stdout.
    A non-zero exit status yields no verdict.
    """

    def __init__(self, name: str, command: str, *, cwd: str | None = None) -> None:
        self.name = name
        self._command = command
        self._cwd = cwd

    async def resolve(self, tool_name: str, content: str) -> Mapping[str, Any] | None:
        payload = json.dumps(_request_payload(tool_name, content)).encode()
        proc = await asyncio.create_subprocess_shell(
            self._command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self._cwd,
        )
        try:
            stdout, stderr = await proc.communicate(payload)
        except BaseException:
            # Cancelled or timed out: don't leave the prompt tool running
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            error = stderr.decode("utf-8", errors="replace").strip()
            logger.warning("Prompt tool %s exited with %s: %s", self.name, proc.returncode, error)
            return None
        output = stdout.decode("utf-8", errors="replace").strip()
        if not output:
            return None
        return _parse_verdict(output, self.name)


class HttpPromptResolver:
    """POSTs the request to an HTTP endpoint acting as the prompt tool."""

    def __init__(
        self,
        name: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.name = name
        self._url = url
        self._headers = headers or {}
        self._client = client

    async def resolve(self, tool_name: str, content: str) -> Mapping[str, Any] | None:
        payload = _request_payload(tool_name, content)
        if self._client is not None:
            resp = await self._client.post(self._url, json=payload, headers=self._headers)
        else:
            async with httpx.AsyncClient() as c:
                resp = await c.post(self._url, json=payload, headers=self._headers)
        resp.raise_for_status()
        return _parse_verdict(resp.text, self.name)
