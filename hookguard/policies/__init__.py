"""
Built-in policies.

Each policy is a small class with a register_all(registry) method, in the
same way the guards, checks and reports are wired here:

    registry = HookRegistry()
    register_default_policies(registry, GuardConfig.from_env())
    registry.freeze()
"""

from typing import List, Mapping, Optional

from rich.console import Console

from ..config import GuardConfig
from ..hooks.registry import HookRegistry
from ..logger import logger
from ..rules import RuleSet
from .checks import ConsoleLogWarning, PreCommitCheck, TypeChecker
from .formatter import AutoFormatter
from .guards import DangerousCommandGuard, EnvGuard
from .reporting import Notifier, PRHelper, SessionSummary, TestWatcher
from .rulesets import BUILTIN_RULE_SETS, load_builtin_rule_sets


def build_policies(
    config: GuardConfig,
    rule_sets: Mapping[str, RuleSet],
    console: Optional[Console] = None,
) -> List[object]:
    """Instantiate the enabled policies, guards first."""
    factories = [
        ("dangerous-command", lambda: DangerousCommandGuard(config, rule_sets)),
        ("env-guard", lambda: EnvGuard(config, rule_sets)),
        ("pre-commit", lambda: PreCommitCheck(config)),
        ("console-log", lambda: ConsoleLogWarning(config)),
        ("auto-format", lambda: AutoFormatter(config)),
        ("type-check", lambda: TypeChecker(config)),
        ("test-watcher", lambda: TestWatcher(config, rule_sets["test-files"])),
        ("pr-helper", lambda: PRHelper(config, console)),
        ("notifier", lambda: Notifier(config)),
        ("session-summary", lambda: SessionSummary(console)),
    ]
    known = {name for name, _ in factories}
    for name in sorted(config.policies - known):
        logger.warning(f"[policy] Unknown policy ignored: {name}")
    return [factory() for name, factory in factories if config.is_enabled(name)]


def register_default_policies(
    registry: HookRegistry,
    config: Optional[GuardConfig] = None,
    rule_sets: Optional[Mapping[str, RuleSet]] = None,
    console: Optional[Console] = None,
) -> List[object]:
    """
    Register every enabled built-in policy on a registry.

    Args:
        registry: Registry to populate (must not be frozen)
        config: Settings; GuardConfig() defaults if omitted
        rule_sets: Rule sets to match against; the built-ins extended by
            config.rules_file if omitted
        console: Console the session reports are printed to

    Returns:
        The registered policy instances
    """
    config = config or GuardConfig()
    if rule_sets is None:
        rule_sets = load_builtin_rule_sets(config.rules_file)

    policies = build_policies(config, rule_sets, console)
    for policy in policies:
        policy.register_all(registry)
    logger.debug(f"[policy] Registered {len(policies)} built-in policies")
    return policies


__all__ = [
    "AutoFormatter",
    "BUILTIN_RULE_SETS",
    "ConsoleLogWarning",
    "DangerousCommandGuard",
    "EnvGuard",
    "Notifier",
    "PRHelper",
    "PreCommitCheck",
    "SessionSummary",
    "TestWatcher",
    "TypeChecker",
    "build_policies",
    "load_builtin_rule_sets",
    "register_default_policies",
]
