"""
Best-effort auto-formatting of files the host creates or edits.
"""

import os
from typing import Optional

from ..config import GuardConfig
from ..hooks.registry import HookRegistry
from ..hooks.types import HandlerEffect, HookEvent, HookPayload
from ..logger import logger
from ..process import format_command, run_command
from ..session import SessionAccessor


class AutoFormatter:
    """Runs the configured formatter on created/edited files with known extensions."""

    def __init__(self, config: Optional[GuardConfig] = None):
        self.config = config or GuardConfig()

    def register_all(self, registry: HookRegistry) -> None:
        registry.register(HookEvent.FILE_CREATED, self.format_file, effect=HandlerEffect.OBSERVE, name="auto-format")
        registry.register(HookEvent.FILE_EDITED, self.format_file, effect=HandlerEffect.OBSERVE, name="auto-format")

    def should_format(self, path: str) -> bool:
        _, ext = os.path.splitext(path)
        return bool(ext) and ext in self.config.formatter_extensions

    async def format_file(self, payload: HookPayload, state: SessionAccessor) -> None:
        path = payload.target_path
        if not self.should_format(path):
            return

        command = format_command(self.config.formatter_command, path=path)
        result = await run_command(command, timeout=self.config.command_timeout)
        if result.ok:
            logger.debug(f"[policy] Formatted {path}")
        else:
            # Formatter not available or failed; never block on it
            logger.debug(f"[policy] Formatter skipped for {path} (exit {result.exit_code})")
