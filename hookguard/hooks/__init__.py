"""
Lifecycle Hooks Module

Handlers are Python callables (or external scripts) that run at specific
points of the host's tool-execution lifecycle and can observe, transform
or veto the operation.

Available Hook Events:
- tool.before: Before a tool executes (may veto or transform)
- tool.after: After a tool finished
- file.created / file.edited: A tool created or modified a file
- session.started / session.ended: Session lifecycle

Example usage:
    from hookguard.hooks import HookManager, HookEvent, PolicyViolation

    manager = HookManager()

    @manager.on(HookEvent.TOOL_BEFORE)
    def block_dangerous_commands(payload, state):
        if payload.tool_name == 'bash' and 'rm -rf /' in payload.command:
            raise PolicyViolation('Dangerous command blocked')

    outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, tool_name='bash',
                                     arguments={'command': 'rm -rf /'})
"""

from ..errors import (
    DuplicateHandlerError,
    DuplicateRegistrationError,
    DuplicateSessionError,
    HookGuardError,
    NotFoundError,
    PolicyViolation,
    RegistryFrozenError,
    SessionNotFoundError,
)
from .manager import HookManager
from .registry import HandlerEntry, HookRegistry
from .scripts import ScriptError, ScriptHandler
from .types import HandlerEffect, HandlerFailure, HookEvent, HookPayload, Outcome

__all__ = [
    'DuplicateHandlerError',
    'DuplicateRegistrationError',
    'DuplicateSessionError',
    'HandlerEffect',
    'HandlerEntry',
    'HandlerFailure',
    'HookEvent',
    'HookGuardError',
    'HookManager',
    'HookPayload',
    'HookRegistry',
    'NotFoundError',
    'Outcome',
    'PolicyViolation',
    'RegistryFrozenError',
    'ScriptError',
    'ScriptHandler',
    'SessionNotFoundError',
]
