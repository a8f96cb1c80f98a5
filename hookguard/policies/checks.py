"""
Code-quality checks that warn but never block.

- ConsoleLogWarning: flags console.log/debug/info left in written JS/TS files
- PreCommitCheck: runs lint and tests before `git commit`, reports the commit after
- TypeChecker: type-checks at the end of a session in which TS files changed
"""

import os
import re
from typing import List, Optional

from ..config import GuardConfig
from ..hooks.registry import HookRegistry
from ..hooks.types import HandlerEffect, HookEvent, HookPayload
from ..logger import logger
from ..process import run_command
from ..session import SessionAccessor


SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
TS_EXTENSIONS = (".ts", ".tsx")

CONSOLE_PATTERN = re.compile(r"console\.(log|debug|info)\(")
ALLOWED_CONSOLE_PATTERN = re.compile(r"console\.(error\(|warn\(|time|table\()")

GIT_COMMIT_PATTERN = re.compile(r"git\s+commit")


def find_console_calls(content: str) -> List[int]:
    """Return the 1-based line numbers that call console.log/debug/info."""
    lines = []
    for index, line in enumerate(content.split("\n")):
        if ALLOWED_CONSOLE_PATTERN.search(line):
            continue
        if CONSOLE_PATTERN.search(line):
            lines.append(index + 1)
    return lines


class ConsoleLogWarning:
    """Warns about leftover console logging in files written by the host."""

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config or GuardConfig()

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(HookEvent.TOOL_AFTER, self.check_content, effect=HandlerEffect.OBSERVE, name="console-log")

    def check_content(self, payload: HookPayload, state: SessionAccessor) -> None:
        if payload.tool_name not in self.config.write_tools or payload.error:
            return
        path = payload.target_path
        if not path.endswith(SCRIPT_EXTENSIONS):
            return

        lines = find_console_calls(payload.content)
        if lines:
            logger.warning(
                f"[policy] Console.log detected in {path} at line(s): {', '.join(map(str, lines))}. "
                "Consider using a proper logger or removing before commit."
            )


class PreCommitCheck:
    """Runs lint and tests before commits; never blocks the commit."""

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config or GuardConfig()

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(HookEvent.TOOL_BEFORE, self.before_commit, effect=HandlerEffect.OBSERVE, name="pre-commit")
        registry.register(HookEvent.TOOL_AFTER, self.after_commit, effect=HandlerEffect.OBSERVE, name="pre-commit")

    def is_commit(self, payload: HookPayload) -> bool:
        return payload.tool_name in self.config.shell_tools and bool(GIT_COMMIT_PATTERN.search(payload.command))

    async def before_commit(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not self.is_commit(payload):
            return

        lint = await run_command(self.config.lint_command, timeout=self.config.command_timeout)
        if not lint.ok:
            logger.warning("[policy] Lint errors detected. Consider fixing before commit.")

        tests = await run_command(self.config.test_command, timeout=self.config.command_timeout)
        if not tests.ok:
            logger.warning("[policy] Test failures detected. Consider fixing before commit.")

    async def after_commit(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not self.is_commit(payload) or payload.error:
            return
        result = payload.result
        exit_code = result.get("exit_code") if isinstance(result, dict) else None
        if exit_code != 0:
            return

        logger.info("[policy] Commit successful")
        last = await run_command(["git", "log", "-1", "--pretty=format:%h %s"], timeout=self.config.command_timeout)
        if last.ok:
            logger.info(f"[policy]    {last.stdout.strip()}")


class TypeChecker:
    """Type-checks the project at session end when TypeScript files changed."""

    EXTRAS_KEY = "typescript_files"

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config or GuardConfig()

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(HookEvent.FILE_CREATED, self.track_file, effect=HandlerEffect.OBSERVE, name="type-check")
        registry.register(HookEvent.FILE_EDITED, self.track_file, effect=HandlerEffect.OBSERVE, name="type-check")
        registry.register(HookEvent.SESSION_ENDED, self.check_session, effect=HandlerEffect.OBSERVE, name="type-check")

    async def track_file(self, payload: HookPayload, state: SessionAccessor) -> None:
        path = payload.target_path
        if os.path.splitext(path)[1] not in TS_EXTENSIONS:
            return
        await state.update_if_active(
            lambda record: record.extras.setdefault(self.EXTRAS_KEY, set()).add(path)
        )

    async def check_session(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not state.exists:
            return
        files = state.get().extras.get(self.EXTRAS_KEY) or set()
        if not files:
            return

        logger.info(f"[policy] Running TypeScript check on {len(files)} modified file(s)...")
        result = await run_command(self.config.typecheck_command, timeout=self.config.command_timeout)
        if result.ok:
            logger.info("[policy] No TypeScript errors found")
        else:
            logger.warning(f"[policy] TypeScript errors detected:\n{result.stderr or result.stdout}")
            logger.warning(f"[policy] Run '{self.config.typecheck_command}' to see all errors")
