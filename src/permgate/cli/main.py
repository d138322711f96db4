"""CLI entry point for permgate."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import click

from permgate.cli.output import (
    decision_to_json,
    exit_code,
    print_decision,
    print_rule_set,
    rule_set_to_json,
)
from permgate.permissions.aggregator import ScopeSettings
from permgate.types.config import EngineConfig, PermissionMode, PromptToolConfig

_MODES = [mode.value for mode in PermissionMode]


def _cli_settings(allow: tuple[str, ...], deny: tuple[str, ...], root: Path) -> ScopeSettings | None:
    if not allow and not deny:
        return None
    return ScopeSettings(allow=allow, deny=deny, base_dir=str(root))


def _load_config(
    root: Path, mode: str | None = None, prompt_command: str | None = None,
) -> EngineConfig:
    from permgate.core.config import load_engine_config

    config = load_engine_config(str(root))
    if mode is not None:
        config = dataclasses.replace(config, mode=PermissionMode(mode))
    if prompt_command:
        name = config.prompt_tool.name if config.prompt_tool else "permission_prompt"
        timeout = config.prompt_tool.timeout if config.prompt_tool else 60.0
        config = dataclasses.replace(
            config,
            prompt_tool=PromptToolConfig(name=name, command=prompt_command, timeout=timeout),
        )
    return config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose (debug) logging")
def cli(verbose: bool) -> None:
    """permgate -- permission checks for agent tool calls.

    \b
    Usage:
      permgate check Bash "npm test"
      permgate check Read src/app.py --deny "Read(secrets/**)"
      permgate rules
      permgate audit verify ~/.permgate/audit/decisions-abc.jsonl
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@cli.command("check")
@click.argument("tool")
@click.argument("content", default="")
@click.option("--cwd", default=None, help="Project root (default: current directory)")
@click.option("--allow", multiple=True, help="Extra allow rule, e.g. 'Bash(npm test:*)'")
@click.option("--deny", multiple=True, help="Extra deny rule, e.g. 'Read(.env)'")
@click.option("--mode", type=click.Choice(_MODES), default=None, help="Permission mode")
@click.option("--prompt-command", default=None, help="Shell command acting as the prompt tool")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
def check_cmd(
    tool: str,
    content: str,
    cwd: str | None,
    allow: tuple[str, ...],
    deny: tuple[str, ...],
    mode: str | None,
    prompt_command: str | None,
    as_json: bool,
) -> None:
    """Decide whether TOOL may run with CONTENT."""
    from permgate.permissions.engine import PermissionEngine

    root = Path(cwd or ".").resolve()
    config = _load_config(root, mode, prompt_command)
    engine = PermissionEngine.from_config(
        config, root, cli_settings=_cli_settings(allow, deny, root),
    )
    try:
        decision = asyncio.run(engine.check(tool, content))
    finally:
        engine.close()

    if as_json:
        click.echo(decision_to_json(decision, tool, content))
    else:
        print_decision(decision, tool, content)
    sys.exit(exit_code(decision))


@cli.command("rules")
@click.option("--cwd", default=None, help="Project root (default: current directory)")
@click.option("--allow", multiple=True, help="Extra allow rule")
@click.option("--deny", multiple=True, help="Extra deny rule")
@click.option("--json", "as_json", is_flag=True, help="Print the rules as JSON")
def rules_cmd(cwd: str | None, allow: tuple[str, ...], deny: tuple[str, ...], as_json: bool) -> None:
    """Show the aggregated rules in evaluation order."""
    from permgate.permissions.engine import PermissionEngine

    root = Path(cwd or ".").resolve()
    config = _load_config(root)
    engine = PermissionEngine.from_config(
        config, root, cli_settings=_cli_settings(allow, deny, root),
    )
    try:
        rule_set = asyncio.run(engine.rule_set())
    finally:
        engine.close()

    if as_json:
        click.echo(rule_set_to_json(rule_set))
    else:
        print_rule_set(rule_set)


@cli.group("audit")
def audit_cmd() -> None:
    """Decision audit log commands."""
    pass


@audit_cmd.command("verify")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def audit_verify(path: Path) -> None:
    """Verify the hash chain of an audit log."""
    from permgate.audit.logger import AuditLogger

    valid, errors = AuditLogger.verify_chain(path)
    if valid:
        click.echo(f"{path}: chain intact")
        return
    for error in errors:
        click.echo(error, err=True)
    raise SystemExit(1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
