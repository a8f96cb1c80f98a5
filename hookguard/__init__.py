"""
hookguard: lifecycle hooks and safety policies for AI coding assistants.

The host reports tool calls, file changes and session boundaries as events;
registered handlers observe them, rewrite their arguments or veto them.
"""

from .archive import SessionArchive
from .config import GuardConfig
from .hooks import (
    HandlerEffect,
    HookEvent,
    HookGuardError,
    HookManager,
    HookPayload,
    HookRegistry,
    Outcome,
    PolicyViolation,
)
from .logger import logger, setup_logging
from .rules import MatchResult, PatternKind, Rule, RuleSet, matches
from .runner import ToolRun, ToolRunner
from .session import SessionAccessor, SessionRecord, SessionStore

__version__ = "0.1.0"

__all__ = [
    "GuardConfig",
    "HandlerEffect",
    "HookEvent",
    "HookGuardError",
    "HookManager",
    "HookPayload",
    "HookRegistry",
    "MatchResult",
    "Outcome",
    "PatternKind",
    "PolicyViolation",
    "Rule",
    "RuleSet",
    "SessionAccessor",
    "SessionArchive",
    "SessionRecord",
    "SessionStore",
    "ToolRun",
    "ToolRunner",
    "logger",
    "matches",
    "setup_logging",
]
