"""PermissionEngine: aggregator + evaluator + audit trail behind one call."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from permgate.audit.logger import AuditLogger
from permgate.permissions.aggregator import RuleAggregator, ScopeProvider, ScopeSettings
from permgate.permissions.evaluator import DecisionEvaluator
from permgate.permissions.parser import format_rule_value
from permgate.permissions.prompt import CommandPromptResolver, HttpPromptResolver, PromptResolver
from permgate.permissions.reporting import ErrorReporter
from permgate.permissions.settings import SettingsFileProvider
from permgate.permissions.tools import extract_content
from permgate.types.config import EngineConfig, PromptToolConfig
from permgate.types.decisions import Decision
from permgate.types.rules import PermissionBehavior, Rule, RuleSet, Scope

logger = logging.getLogger(__name__)


def build_prompt_resolver(
    config: PromptToolConfig, cwd: str | None = None,
) -> PromptResolver | None:
    """Create the resolver described by *config*; commands win over URLs."""
    if config.command:
        return CommandPromptResolver(config.name, config.command, cwd=cwd)
    if config.url:
        return HttpPromptResolver(config.name, config.url)
    return None


class PermissionEngine:
    """Entry point for the agent loop.

    Every check evaluates against one RuleSet snapshot, so rule reloads
    running in parallel never affect a decision in flight.
    """

    def __init__(
        self,
        aggregator: RuleAggregator,
        evaluator: DecisionEvaluator,
        root_dir: str | Path,
        *,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._evaluator = evaluator
        self._root = str(root_dir)
        self._audit = audit_logger
        self._audited_version = 0

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        project_root: str | Path,
        *,
        cli_settings: ScopeSettings | None = None,
        provider: ScopeProvider | None = None,
        error_reporter: ErrorReporter | None = None,
        session_id: str | None = None,
    ) -> PermissionEngine:
        """Wire an engine from resolved configuration."""
        root = Path(project_root).resolve()
        if provider is None:
            overrides = {Scope.CLI_ARGUMENT: cli_settings} if cli_settings else None
            provider = SettingsFileProvider(
                root,
                policy_path=config.policy_settings_path,
                overrides=overrides,
            )

        resolver = None
        timeout = None
        if config.prompt_tool is not None:
            resolver = build_prompt_resolver(config.prompt_tool, cwd=str(root))
            timeout = config.prompt_tool.timeout

        default_behavior = None
        if config.default_behavior:
            default_behavior = PermissionBehavior(config.default_behavior)

        evaluator = DecisionEvaluator(
            resolver,
            mode=config.mode,
            default_behavior=default_behavior,
            prompt_timeout=timeout,
            error_reporter=error_reporter,
        )

        audit_logger = None
        if config.audit.enabled:
            audit_logger = AuditLogger(
                session_id or uuid.uuid4().hex[:12],
                log_content=config.audit.log_content,
                audit_dir=Path(config.audit.audit_dir) if config.audit.audit_dir else None,
            )

        return cls(RuleAggregator(provider), evaluator, root, audit_logger=audit_logger)

    @property
    def aggregator(self) -> RuleAggregator:
        return self._aggregator

    @property
    def evaluator(self) -> DecisionEvaluator:
        return self._evaluator

    @property
    def root_dir(self) -> str:
        return self._root

    async def rule_set(self) -> RuleSet:
        rule_set = await self._aggregator.get_rule_set()
        if self._audit is not None and rule_set.version != self._audited_version:
            self._audited_version = rule_set.version
            self._audit.log_rules_reloaded(rule_set)
        return rule_set

    async def check(self, tool_name: str, content: str) -> Decision | None:
        """Decide one invocation. None means no decision was produced."""
        rule_set = await self.rule_set()
        return await self._evaluate(tool_name, content, rule_set)

    async def check_tool_call(self, tool_name: str, args: dict[str, Any]) -> Decision | None:
        """Decide a raw tool call, extracting its content from *args*."""
        return await self.check(tool_name, extract_content(tool_name, args))

    async def check_many(
        self, invocations: Iterable[tuple[str, str]],
    ) -> list[Decision | None]:
        """Decide several invocations concurrently against one snapshot."""
        rule_set = await self.rule_set()
        return list(await asyncio.gather(*(
            self._evaluate(tool_name, content, rule_set)
            for tool_name, content in invocations
        )))

    def grant_for_session(self, rule: Rule) -> None:
        """Persist a suggested rule in the session scope."""
        self._aggregator.add_session_rule(format_rule_value(rule.value), rule.behavior)

    async def _evaluate(self, tool_name: str, content: str, rule_set: RuleSet) -> Decision | None:
        decision = await self._evaluator.evaluate(tool_name, content, rule_set, self._root)
        if decision is None:
            logger.info("No permission decision for %s; caller must ask", tool_name)
            if self._audit is not None:
                self._audit.log_no_decision(tool_name, content, rule_set_version=rule_set.version)
            return None

        logger.debug("%s(%s) -> %s", tool_name, content, decision.behavior.value)
        if self._audit is not None:
            self._audit.log_decision(tool_name, content, decision, rule_set_version=rule_set.version)
        return decision

    def close(self) -> None:
        if self._audit is not None:
            self._audit.close()
