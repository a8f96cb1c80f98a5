"""
Runtime configuration for hookguard.

Settings are read once at process start from ``HOOKGUARD_*`` environment
variables, after loading a ``.env`` file if one can be found.
"""

import os
from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from dotenv import find_dotenv, load_dotenv


ENV_PREFIX = "HOOKGUARD_"

DEFAULT_POLICIES = frozenset({
    "dangerous-command",
    "env-guard",
    "auto-format",
    "console-log",
    "pre-commit",
    "type-check",
    "test-watcher",
    "pr-helper",
    "notifier",
    "session-summary",
})


def load_env() -> None:
    _ = load_dotenv(find_dotenv(usecwd=True))


def _split(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class GuardConfig:
    """Configuration shared by the dispatcher and the built-in policies."""

    handler_timeout: float = 30.0  # seconds per handler
    log_level: str = "INFO"
    archive_dir: Optional[str] = None
    rules_file: Optional[str] = None
    policies: FrozenSet[str] = DEFAULT_POLICIES

    # Tool identifiers used by the host
    shell_tools: Tuple[str, ...] = ("bash",)
    read_tools: Tuple[str, ...] = ("read",)
    write_tools: Tuple[str, ...] = ("write", "edit")

    # External commands; "{path}" is replaced with the target file
    formatter_command: str = "npx prettier --write {path}"
    formatter_extensions: Tuple[str, ...] = (
        ".ts", ".tsx", ".js", ".jsx", ".json", ".css", ".scss", ".md",
    )
    typecheck_command: str = "npx tsc --noEmit"
    lint_command: str = "npm run lint --silent"
    test_command: str = "npm test --silent"
    command_timeout: float = 120.0

    notify_min_duration: float = 30.0
    notify_sound: bool = True

    def is_enabled(self, policy: str) -> bool:
        return policy in self.policies

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> "GuardConfig":
        """
        Build a configuration from environment variables.

        Args:
            load_dotenv_file: Whether to load a .env file first

        Returns:
            A GuardConfig with defaults for every unset variable

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        if load_dotenv_file:
            load_env()

        def get(name: str) -> Optional[str]:
            value = os.getenv(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        config = cls()
        if get("HANDLER_TIMEOUT"):
            config.handler_timeout = float(get("HANDLER_TIMEOUT"))
        if get("COMMAND_TIMEOUT"):
            config.command_timeout = float(get("COMMAND_TIMEOUT"))
        if get("NOTIFY_MIN_DURATION"):
            config.notify_min_duration = float(get("NOTIFY_MIN_DURATION"))
        if get("LOG_LEVEL"):
            config.log_level = get("LOG_LEVEL").upper()
        config.archive_dir = get("ARCHIVE_DIR")
        config.rules_file = get("RULES_FILE")
        if get("POLICIES"):
            config.policies = frozenset(_split(get("POLICIES")))
        for name in ("SHELL_TOOLS", "READ_TOOLS", "WRITE_TOOLS", "FORMATTER_EXTENSIONS"):
            if get(name):
                setattr(config, name.lower(), _split(get(name)))
        for name in ("FORMATTER_COMMAND", "TYPECHECK_COMMAND", "LINT_COMMAND", "TEST_COMMAND"):
            if get(name):
                setattr(config, name.lower(), get(name))
        if get("NOTIFY_SOUND"):
            config.notify_sound = get("NOTIFY_SOUND").lower() in ("1", "true", "yes")

        if config.handler_timeout <= 0:
            raise ValueError(f"{ENV_PREFIX}HANDLER_TIMEOUT must be positive, got {config.handler_timeout}")
        return config
