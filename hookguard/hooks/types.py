"""
Hook types and data structures for the lifecycle hooks system.
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from ..rules import Rule
    from ..session import SessionRecord


class HookEvent(str, enum.Enum):
    """
    Lifecycle events emitted by the host.

    - TOOL_BEFORE: Before a tool (shell, read, write, ...) executes
    - TOOL_AFTER: After a tool finished executing
    - FILE_CREATED: A file was created by a tool
    - FILE_EDITED: An existing file was modified by a tool
    - SESSION_STARTED: A host session begins
    - SESSION_ENDED: A host session completes
    """
    TOOL_BEFORE = "tool.before"
    TOOL_AFTER = "tool.after"
    FILE_CREATED = "file.created"
    FILE_EDITED = "file.edited"
    SESSION_STARTED = "session.started"
    SESSION_ENDED = "session.ended"

    @classmethod
    def parse(cls, value: Any) -> "HookEvent":
        """Resolve an event from its name, accepting the host's legacy names."""
        if isinstance(value, cls):
            return value
        name = str(value).strip()
        try:
            return cls(name)
        except ValueError:
            pass
        if name in _LEGACY_NAMES:
            return _LEGACY_NAMES[name]
        raise ValueError(f"Invalid hook event: {value}")


_LEGACY_NAMES = {
    "tool.execute.before": HookEvent.TOOL_BEFORE,
    "tool.execute.after": HookEvent.TOOL_AFTER,
    "file.create": HookEvent.FILE_CREATED,
    "file.edit": HookEvent.FILE_EDITED,
    "session.create": HookEvent.SESSION_STARTED,
    "session.complete": HookEvent.SESSION_ENDED,
}


class HandlerEffect(enum.Flag):
    """What a handler is allowed to do to the operation it observes."""
    OBSERVE = 0
    VETO = 1
    TRANSFORM = 2
    ANY = VETO | TRANSFORM


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class HookPayload:
    """
    Event data passed to hook handlers.

    Payloads are immutable. A handler that wants to change the operation
    returns a new payload built with replace() or with_arguments().

    Attributes:
        event: The hook event type
        timestamp: When the event occurred
        session_id: Host session the event belongs to (if any)
        tool_name: Name of the tool (tool events)
        arguments: Tool arguments, e.g. command, file_path, content
        result: Tool execution result (tool.after)
        error: Tool error message when the tool raised (tool.after)
        file_path: Path of the created or edited file (file events)
        metadata: Additional event-specific data
    """
    event: HookEvent
    timestamp: datetime = field(default_factory=datetime.now)
    session_id: Optional[str] = None
    tool_name: Optional[str] = None
    arguments: Mapping[str, Any] = field(default_factory=dict)
    result: Optional[Any] = None
    error: Optional[str] = None
    file_path: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "event", HookEvent.parse(self.event))
        object.__setattr__(self, "arguments", _freeze(self.arguments))
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    @property
    def command(self) -> str:
        """Shell command argument, or an empty string."""
        return str(self.arguments.get("command") or "")

    @property
    def target_path(self) -> str:
        """The file this event is about: file_path or the tool's path argument."""
        if self.file_path:
            return self.file_path
        for key in ("file_path", "filePath", "path"):
            if self.arguments.get(key):
                return str(self.arguments[key])
        return ""

    @property
    def content(self) -> str:
        """Content being written by a write/edit tool, or an empty string."""
        for key in ("content", "new_string", "newString"):
            if self.arguments.get(key):
                return str(self.arguments[key])
        return ""

    def replace(self, **changes: Any) -> "HookPayload":
        return replace(self, **changes)

    def with_arguments(self, **arguments: Any) -> "HookPayload":
        """Return a copy with the given arguments added or replaced."""
        merged = dict(self.arguments)
        merged.update(arguments)
        return replace(self, arguments=merged)

    def to_dict(self) -> Dict[str, Any]:
        """Convert payload to dictionary for serialization."""
        return {
            'event': self.event.value,
            'timestamp': self.timestamp.isoformat(),
            'session_id': self.session_id,
            'tool_name': self.tool_name,
            'arguments': dict(self.arguments),
            'result': self.result,
            'error': self.error,
            'file_path': self.file_path,
            'metadata': dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], event: Optional[Any] = None) -> "HookPayload":
        """
        Build a payload from its dictionary form.

        Args:
            data: Dictionary as produced by to_dict() or sent by the host
            event: Event override; defaults to data["event"]

        Raises:
            ValueError: If no valid event is given
        """
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            event=HookEvent.parse(event if event is not None else data.get("event")),
            timestamp=timestamp or datetime.now(),
            session_id=data.get("session_id"),
            tool_name=data.get("tool_name"),
            arguments=data.get("arguments") or {},
            result=data.get("result"),
            error=data.get("error"),
            file_path=data.get("file_path"),
            metadata=data.get("metadata") or {},
        )


@dataclass
class HandlerFailure:
    """
    An unexpected error (or timeout) inside one handler.

    Failures are isolated: they are logged and recorded on the Outcome,
    and the remaining handlers still run.
    """
    handler_name: str
    event: HookEvent
    error: str
    timed_out: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'handler': self.handler_name,
            'event': self.event.value,
            'error': self.error,
            'timed_out': self.timed_out,
        }


@dataclass
class Outcome:
    """
    Result of running every handler for one event occurrence.

    Either proceed (with the possibly transformed payload) or abort with
    a reason the host must surface to the user verbatim.

    Attributes:
        payload: Final payload after all transforms
        blocked: True if a handler vetoed the operation
        reason: The veto explanation
        rule: The rule behind the veto, if the handler supplied one
        handler_name: Name of the vetoing handler
        failures: Handlers that failed or timed out during this dispatch
        session_record: Final session state, set for session.ended
    """
    payload: HookPayload
    blocked: bool = False
    reason: Optional[str] = None
    rule: Optional["Rule"] = None
    handler_name: Optional[str] = None
    failures: List[HandlerFailure] = field(default_factory=list)
    session_record: Optional["SessionRecord"] = None

    @property
    def proceeded(self) -> bool:
        return not self.blocked

    def to_dict(self) -> Dict[str, Any]:
        """Convert outcome to dictionary for serialization."""
        return {
            'decision': 'abort' if self.blocked else 'proceed',
            'reason': self.reason,
            'rule': self.rule.name if self.rule else None,
            'handler': self.handler_name,
            'payload': self.payload.to_dict(),
            'failures': [f.to_dict() for f in self.failures],
            'session': self.session_record.to_dict() if self.session_record else None,
        }

    @classmethod
    def proceed(cls, payload: HookPayload) -> "Outcome":
        """Create an outcome that lets the operation run."""
        return cls(payload=payload)

    @classmethod
    def abort(
        cls,
        reason: str,
        payload: HookPayload,
        rule: Optional["Rule"] = None,
        handler_name: Optional[str] = None,
    ) -> "Outcome":
        """Create an outcome that blocks the operation."""
        return cls(payload=payload, blocked=True, reason=reason, rule=rule, handler_name=handler_name)
