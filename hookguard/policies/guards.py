"""
Guard policies: handlers that veto dangerous operations on tool.before.

- DangerousCommandGuard: blocks destructive shell commands and warns on risky ones
- EnvGuard: blocks access to secret files, secrets written into files and
  shell commands that print secrets
"""

import os
from typing import Mapping, Optional

from ..config import GuardConfig
from ..errors import PolicyViolation
from ..hooks.registry import HookRegistry
from ..hooks.types import HandlerEffect, HookEvent, HookPayload
from ..logger import logger
from ..rules import RuleSet, matches
from ..session import SessionAccessor
from .rulesets import BUILTIN_RULE_SETS


async def _blocked(state: SessionAccessor, violation: PolicyViolation) -> PolicyViolation:
    """Note the veto on the session record and hand the violation back for raising."""
    def note(record):
        record.errors.append(violation.reason.splitlines()[0])
    await state.update_if_active(note)
    return violation


class DangerousCommandGuard:
    """
    Blocks shell commands matching the dangerous-commands rule set.

    Commands matching risky-commands are allowed but logged as warnings.
    """

    def __init__(
        self,
        config: Optional[GuardConfig] = None,
        rule_sets: Optional[Mapping[str, RuleSet]] = None,
    ):
        self.config = config or GuardConfig()
        rule_sets = rule_sets or BUILTIN_RULE_SETS
        self.dangerous = rule_sets["dangerous-commands"]
        self.risky = rule_sets["risky-commands"]

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(
            HookEvent.TOOL_BEFORE,
            self.check_command,
            effect=HandlerEffect.VETO,
            name="dangerous-command",
        )

    async def check_command(self, payload: HookPayload, state: SessionAccessor) -> None:
        if payload.tool_name not in self.config.shell_tools:
            return
        command = payload.command
        if not command:
            return

        match = matches(self.dangerous, command)
        if match:
            logger.warning(f"[policy] Dangerous command blocked ({match.rule.name}): {command[:80]}")
            raise await _blocked(state, PolicyViolation(match.rule.explanation, rule=match.rule))

        warning = matches(self.risky, command)
        if warning:
            logger.warning(f"[policy] Warning: {warning.rule.explanation}")
            logger.warning(f"[policy]    Command: {command[:80]}")


class EnvGuard:
    """
    Protects secret files and content.

    - read/write tools: blocks paths in sensitive-files unless they are in
      allowed-files
    - write tools: blocks content matching secret-patterns
    - shell tools: blocks commands matching secret-exposing-commands
    """

    def __init__(
        self,
        config: Optional[GuardConfig] = None,
        rule_sets: Optional[Mapping[str, RuleSet]] = None,
    ):
        self.config = config or GuardConfig()
        rule_sets = rule_sets or BUILTIN_RULE_SETS
        self.sensitive = rule_sets["sensitive-files"]
        self.allowed = rule_sets["allowed-files"]
        self.secrets = rule_sets["secret-patterns"]
        self.exposing = rule_sets["secret-exposing-commands"]

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(
            HookEvent.TOOL_BEFORE,
            self.check_file_access,
            effect=HandlerEffect.VETO,
            name="env-guard:files",
        )
        registry.register(
            HookEvent.TOOL_BEFORE,
            self.check_command,
            effect=HandlerEffect.VETO,
            name="env-guard:commands",
        )

    def is_sensitive(self, path: str):
        """Return the matching sensitive-file rule, or None for allowed paths."""
        if not path or matches(self.allowed, path):
            return None
        return matches(self.sensitive, path).rule

    async def check_file_access(self, payload: HookPayload, state: SessionAccessor) -> None:
        tool = payload.tool_name
        reading = tool in self.config.read_tools
        writing = tool in self.config.write_tools
        if not (reading or writing):
            return

        path = payload.target_path
        rule = self.is_sensitive(path)
        if rule is not None:
            name = os.path.basename(path)
            if reading:
                prefix = f'Access denied: "{name}" contains sensitive data.'
            else:
                prefix = f'Write denied: cannot modify sensitive file "{name}".'
            logger.warning(f"[policy] {prefix}")
            raise await _blocked(state, PolicyViolation.from_rule(rule, prefix=prefix))

        if writing:
            match = matches(self.secrets, payload.content)
            if match:
                logger.warning(f"[policy] Secret detected in content for {path} ({match.rule.name})")
                raise await _blocked(state, PolicyViolation(f"Secret detected: {match.rule.explanation}", rule=match.rule))

    async def check_command(self, payload: HookPayload, state: SessionAccessor) -> None:
        if payload.tool_name not in self.config.shell_tools:
            return
        match = matches(self.exposing, payload.command)
        if match:
            logger.warning(f"[policy] Command may expose secrets ({match.rule.name})")
            raise await _blocked(state, PolicyViolation(match.rule.explanation, rule=match.rule))
