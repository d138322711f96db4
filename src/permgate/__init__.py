"""permgate: permission engine for agent tool invocations.

Usage:
    from permgate import PermissionEngine, load_engine_config

    engine = PermissionEngine.from_config(load_engine_config(), "/path/to/project")
    decision = await engine.check("Bash", "npm test")
    match decision:
        case None:
            ...  # no verdict: ask the user
        case Decision(behavior=PermissionBehavior.ALLOW):
            ...  # run the tool
"""

from permgate.core.config import load_engine_config
from permgate.permissions.engine import PermissionEngine
from permgate.types.config import EngineConfig, PermissionMode
from permgate.types.decisions import Decision
from permgate.types.rules import PermissionBehavior, Rule, RuleSet, RuleValue, Scope

__version__ = "0.1.0"

__all__ = [
    # Core API
    "PermissionEngine",
    "load_engine_config",
    # Data model
    "Decision",
    "PermissionBehavior",
    "Rule",
    "RuleSet",
    "RuleValue",
    "Scope",
    # Configuration
    "EngineConfig",
    "PermissionMode",
]
