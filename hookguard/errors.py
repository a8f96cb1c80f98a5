"""
Exceptions raised by the hook engine.

PolicyViolation is the only one a handler is expected to raise: it is the
veto signal and is turned into an aborted Outcome by the dispatcher. The
others are setup or lookup errors and propagate to the caller.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .rules import Rule


class HookGuardError(Exception):
    """Base class for all hookguard errors."""
    pass


class PolicyViolation(HookGuardError):
    """
    Raised by a handler to block the current operation.

    Attributes:
        reason: Human-readable explanation surfaced to the host verbatim
        rule: The rule that triggered the veto, if any
    """

    def __init__(self, reason: str, rule: Optional["Rule"] = None):
        super().__init__(reason)
        self.reason = reason
        self.rule = rule

    @classmethod
    def from_rule(cls, rule: "Rule", prefix: Optional[str] = None) -> "PolicyViolation":
        reason = f"{prefix}\n{rule.explanation}" if prefix else rule.explanation
        return cls(reason, rule=rule)


class DuplicateRegistrationError(HookGuardError):
    """Raised when the same thing is registered twice."""
    pass


class DuplicateHandlerError(DuplicateRegistrationError):
    """Raised when a handler is registered twice for the same event."""
    pass


class RegistryFrozenError(HookGuardError):
    """Raised when registering on a registry after freeze()."""
    pass


class DuplicateSessionError(HookGuardError):
    """Raised when a session id is started while still active."""
    pass


class NotFoundError(HookGuardError, KeyError):
    """Raised when a lookup finds nothing."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class SessionNotFoundError(NotFoundError):
    """Raised when querying state for an unknown session."""
    pass
