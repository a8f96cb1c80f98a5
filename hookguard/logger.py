"""
Logging for hookguard.

All modules log through the single ``hookguard`` logger and prefix their
messages with a bracketed component tag ([hooks], [session], [policy], ...).
"""

import logging
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

if TYPE_CHECKING:
    from .hooks.types import Outcome


LOGGER_NAME = "hookguard"

THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "critical": "bold white on red",
        "debug": "dim white",
    }
)

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(
    level: str = "INFO",
    show_path: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Install a rich handler on the hookguard logger.

    Output goes to stderr so that stdout stays free for machine-readable
    dispatch results.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        show_path: Whether to show the module path of each record
        console: Optional console override (used by tests)
    """
    handler = RichHandler(
        console=console or Console(theme=THEME, stderr=True),
        show_time=True,
        show_path=show_path,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%H:%M:%S]"))

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False


def log_outcome(event: str, outcome: "Outcome") -> None:
    """Log the result of one dispatch in a single line."""
    if outcome.blocked:
        logger.warning(f"[hooks] {event} aborted: {outcome.reason}")
    elif outcome.failures:
        names = ", ".join(f.handler_name for f in outcome.failures)
        logger.info(f"[hooks] {event} proceeded with {len(outcome.failures)} failed handler(s): {names}")
    else:
        logger.debug(f"[hooks] {event} proceeded")
