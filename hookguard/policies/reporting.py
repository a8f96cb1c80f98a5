"""
Observational policies that report on a session. None of them ever block.

- SessionSummary: counts tool calls and files, prints a report at session end
- TestWatcher: remembers edited test files and suggests running them
- PRHelper: lists changed files and suggests PR commands
- Notifier: desktop notification when a long session ends
"""

import shlex
import sys
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel

from ..config import GuardConfig
from ..hooks.registry import HookRegistry
from ..hooks.types import HandlerEffect, HookEvent, HookPayload
from ..logger import logger
from ..process import run_command
from ..rules import RuleSet, matches
from ..session import SessionAccessor, SessionRecord
from .rulesets import TEST_FILES


MAX_LISTED = 5


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    minutes, hours = seconds // 60, seconds // 3600
    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def build_report(record: SessionRecord) -> str:
    """Render the plain-text session report."""
    lines = [
        f"Duration: {format_duration(record.duration)}",
        "",
        "Files:",
        f"   Created: {len(record.files_created)}",
        f"   Edited:  {len(record.files_edited)}",
    ]

    created = sorted(record.files_created)
    if created:
        lines.append("")
        lines.append("   New files:")
        lines.extend(f"   + {path}" for path in created[:MAX_LISTED])
        if len(created) > MAX_LISTED:
            lines.append(f"   ... and {len(created) - MAX_LISTED} more")

    if record.tool_counts:
        lines.append("")
        lines.append(f"Tools used ({record.tool_calls} call(s)):")
        for tool, count in record.tool_counts.most_common(MAX_LISTED):
            lines.append(f"   {tool}: {count}")

    if record.errors:
        lines.append("")
        lines.append(f"Blocked or failed: {len(record.errors)}")
        lines.extend(f"   ! {error}" for error in record.errors[:MAX_LISTED])

    return "\n".join(lines)


class SessionSummary:
    """Accumulates per-session activity and prints a summary when it ends."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    def register_all(self, registry: HookRegistry) -> None:
        effect = HandlerEffect.OBSERVE
        registry.register(HookEvent.SESSION_STARTED, self.on_session_start, effect=effect, name="session-summary")
        registry.register(HookEvent.TOOL_AFTER, self.on_tool_after, effect=effect, name="session-summary")
        registry.register(HookEvent.FILE_CREATED, self.on_file_created, effect=effect, name="session-summary")
        registry.register(HookEvent.FILE_EDITED, self.on_file_edited, effect=effect, name="session-summary")
        registry.register(HookEvent.SESSION_ENDED, self.on_session_end, effect=effect, name="session-summary")

    def on_session_start(self, payload: HookPayload, state: SessionAccessor) -> None:
        logger.debug(f"[policy] Tracking session {payload.session_id}")

    async def on_tool_after(self, payload: HookPayload, state: SessionAccessor) -> None:
        tool = payload.tool_name or "unknown"

        def count(record: SessionRecord) -> None:
            record.tool_counts[tool] += 1
            record.tool_calls += 1
            if payload.error:
                record.errors.append(f"{tool}: {payload.error}")

        await state.update_if_active(count)

    async def on_file_created(self, payload: HookPayload, state: SessionAccessor) -> None:
        path = payload.target_path
        if path:
            await state.update_if_active(lambda record: record.files_created.add(path))

    async def on_file_edited(self, payload: HookPayload, state: SessionAccessor) -> None:
        path = payload.target_path
        if path:
            await state.update_if_active(lambda record: record.files_edited.add(path))

    async def on_session_end(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not state.exists:
            return

        def summarize(record: SessionRecord) -> str:
            record.report = build_report(record)
            return record.report

        report = await state.mutate(summarize)
        self.console.print(Panel(report, title="SESSION SUMMARY", expand=False))


class TestWatcher:
    """Suggests running the test files edited during the session."""

    __test__ = False  # not a pytest test class

    EXTRAS_KEY = "test_files"

    def __init__(self, config: Optional[GuardConfig] = None, rule_set: RuleSet = TEST_FILES):
        self.config = config or GuardConfig()
        self.rule_set = rule_set

    def register_all(self, registry: HookRegistry) -> None:
        effect = HandlerEffect.OBSERVE
        registry.register(HookEvent.FILE_CREATED, self.track_file, effect=effect, name="test-watcher")
        registry.register(HookEvent.FILE_EDITED, self.track_file, effect=effect, name="test-watcher")
        registry.register(HookEvent.SESSION_ENDED, self.suggest, effect=effect, name="test-watcher")

    async def track_file(self, payload: HookPayload, state: SessionAccessor) -> None:
        path = payload.target_path
        if matches(self.rule_set, path):
            await state.update_if_active(
                lambda record: record.extras.setdefault(self.EXTRAS_KEY, set()).add(path)
            )

    def suggest(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not state.exists:
            return
        files = sorted(state.get().extras.get(self.EXTRAS_KEY) or ())
        if not files:
            return
        logger.info("[policy] Modified test files this session:")
        for path in files:
            logger.info(f"[policy]    - {path}")
        logger.info(f"[policy] Run tests: {self.config.test_command} -- {' '.join(files)}")


class PRHelper:
    """Lists the session's changed files with suggested pull-request commands."""

    EXTRAS_KEY = "branch"
    MAX_FILES = 10

    def __init__(self, config: Optional[GuardConfig] = None, console: Optional[Console] = None):
        self.config = config or GuardConfig()
        self.console = console or Console(stderr=True)

    def register_all(self, registry: HookRegistry) -> None:
        effect = HandlerEffect.OBSERVE
        registry.register(HookEvent.SESSION_STARTED, self.record_branch, effect=effect, name="pr-helper")
        registry.register(HookEvent.SESSION_ENDED, self.summarize, effect=effect, name="pr-helper")

    async def record_branch(self, payload: HookPayload, state: SessionAccessor) -> None:
        result = await run_command(["git", "branch", "--show-current"], timeout=self.config.command_timeout)
        branch = result.stdout.strip() if result.ok else None
        await state.update_if_active(lambda record: record.extras.__setitem__(self.EXTRAS_KEY, branch))

    def summarize(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not state.exists:
            return
        record = state.get()
        files = sorted(record.files_touched)
        if not files:
            return

        lines: List[str] = []
        branch = record.extras.get(self.EXTRAS_KEY)
        if branch:
            lines.append(f"Branch: {branch}")
            lines.append("")
        lines.append(f"Files changed ({len(files)}):")
        lines.extend(f"  - {path}" for path in files[:self.MAX_FILES])
        if len(files) > self.MAX_FILES:
            lines.append(f"  ... and {len(files) - self.MAX_FILES} more")
        lines.extend([
            "",
            "Suggested PR commands:",
            "   git add -A",
            '   git commit -m "feat: <description>"',
            "   git push -u origin HEAD",
            "   gh pr create --fill",
        ])
        self.console.print(Panel("\n".join(lines), title="PR Helper", expand=False))


class Notifier:
    """Sends a desktop notification when a session longer than the threshold ends."""

    TITLE = "Session Complete"

    def __init__(self, config: Optional[GuardConfig] = None, platform: Optional[str] = None):
        self.config = config or GuardConfig()
        self.platform = platform or sys.platform

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(HookEvent.SESSION_ENDED, self.notify, effect=HandlerEffect.OBSERVE, name="notifier")

    def build_command(self, message: str) -> Optional[List[str]]:
        if self.platform == "darwin":
            script = f"display notification {_applescript_quote(message)} with title {_applescript_quote(self.TITLE)}"
            if self.config.notify_sound:
                script += ' sound name "default"'
            return ["osascript", "-e", script]
        if self.platform.startswith("linux"):
            return ["notify-send", self.TITLE, message]
        return None

    async def notify(self, payload: HookPayload, state: SessionAccessor) -> None:
        if not state.exists:
            return
        record = state.get()
        if record.duration < self.config.notify_min_duration:
            return

        message = f"Session finished in {format_duration(record.duration)}"
        summary = payload.metadata.get("summary")
        if summary:
            message += f"\n{str(summary)[:100]}"

        command = self.build_command(message)
        if command is None:
            logger.debug(f"[policy] Notification skipped: unsupported platform {self.platform}")
            return
        result = await run_command(command, timeout=self.config.command_timeout)
        if not result.ok:
            logger.debug(f"[policy] Notification skipped: {shlex.join(command[:1])} exited {result.exit_code}")


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
