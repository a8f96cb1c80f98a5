"""
Session state store.

Holds one mutable record per active host session. Records are created on
session.started, updated by handlers while the session runs and removed on
session.ended, so the store only ever contains live sessions.

Mutations go through SessionStore.mutate(), which serialises updaters per
session id with an asyncio.Lock. Different sessions never wait on each other.
"""

import asyncio
import inspect
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar, Union

from .errors import DuplicateSessionError, SessionNotFoundError
from .logger import logger


T = TypeVar("T")
Updater = Callable[["SessionRecord"], Union[T, Awaitable[T]]]


@dataclass
class SessionRecord:
    """Counters and sets accumulated over one session."""
    session_id: str
    started_at: datetime = field(default_factory=datetime.now)
    files_created: Set[str] = field(default_factory=set)
    files_edited: Set[str] = field(default_factory=set)
    tool_counts: Counter = field(default_factory=Counter)
    tool_calls: int = 0
    errors: List[str] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)
    report: Optional[str] = None
    ended_at: Optional[datetime] = None

    @property
    def duration(self) -> float:
        """Seconds since the session started (or until it ended)."""
        end = self.ended_at or datetime.now()
        return (end - self.started_at).total_seconds()

    @property
    def files_touched(self) -> Set[str]:
        return self.files_created | self.files_edited

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "started": self.started_at.isoformat(),
            "ended": self.ended_at.isoformat() if self.ended_at else None,
            "duration": round(self.duration, 3),
            "files_created": sorted(self.files_created),
            "files_edited": sorted(self.files_edited),
            "tool_counts": dict(self.tool_counts),
            "tool_calls": self.tool_calls,
            "errors": list(self.errors),
            "extras": {key: _plain(value) for key, value in self.extras.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
        """
        Rebuild a record from to_dict() output (e.g. YAML loaded from disk).

        List values in extras come back as sets, the shape policies keep them in.
        """
        return cls(
            session_id=data["id"],
            started_at=_parse_time(data.get("started")) or datetime.now(),
            files_created=set(data.get("files_created") or ()),
            files_edited=set(data.get("files_edited") or ()),
            tool_counts=Counter(data.get("tool_counts") or {}),
            tool_calls=int(data.get("tool_calls") or 0),
            errors=list(data.get("errors") or ()),
            extras={
                key: set(value) if isinstance(value, list) else value
                for key, value in (data.get("extras") or {}).items()
            },
            report=data.get("report"),
            ended_at=_parse_time(data.get("ended")),
        )


def _plain(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return value


def _parse_time(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


class SessionStore:
    """Process-wide store of active session records, keyed by session id."""

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records

    def start_session(self, session_id: str, started_at: Optional[datetime] = None) -> SessionRecord:
        """
        Create an empty record for a new session.

        Raises:
            DuplicateSessionError: If the session is already active
        """
        record = self.restore(SessionRecord(session_id=session_id, started_at=started_at or datetime.now()))
        logger.debug(f"[session] Started {session_id}")
        return record

    def restore(self, record: SessionRecord) -> SessionRecord:
        """
        Make a previously saved record active again (e.g. in a new process).

        Raises:
            DuplicateSessionError: If the session is already active
        """
        if record.session_id in self._records:
            raise DuplicateSessionError(f"Session already active: {record.session_id}")
        self._records[record.session_id] = record
        self._locks[record.session_id] = asyncio.Lock()
        return record

    def get(self, session_id: str) -> SessionRecord:
        """
        Return the live record for a session.

        Raises:
            SessionNotFoundError: If the session is not active
        """
        try:
            return self._records[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Unknown session: {session_id}") from None

    async def mutate(self, session_id: str, updater: Updater) -> Any:
        """
        Apply an updater to a session record under the session's lock.

        Args:
            session_id: Session to update
            updater: Callable taking the record; may be a coroutine function

        Returns:
            Whatever the updater returns

        Raises:
            SessionNotFoundError: If the session is not active
        """
        self.get(session_id)
        lock = self._locks[session_id]
        async with lock:
            # The session may have ended while we waited for the lock
            record = self.get(session_id)
            result = updater(record)
            if inspect.isawaitable(result):
                result = await result
            return result

    def end_session(self, session_id: str) -> SessionRecord:
        """
        Remove a session and return its final record.

        Raises:
            SessionNotFoundError: If the session is not active
        """
        record = self.get(session_id)
        record.ended_at = datetime.now()
        del self._records[session_id]
        self._locks.pop(session_id, None)
        logger.debug(f"[session] Ended {session_id} after {record.duration:.1f}s")
        return record

    def active_sessions(self) -> List[str]:
        return list(self._records)


class SessionAccessor:
    """
    View of one session's state handed to handlers.

    Bound to the payload's session id; handlers use it instead of touching
    the store directly.
    """

    def __init__(self, store: SessionStore, session_id: Optional[str]):
        self._store = store
        self.session_id = session_id

    @property
    def exists(self) -> bool:
        return self.session_id is not None and self.session_id in self._store

    def get(self) -> SessionRecord:
        if self.session_id is None:
            raise SessionNotFoundError("Event has no session id")
        return self._store.get(self.session_id)

    async def mutate(self, updater: Updater) -> Any:
        if self.session_id is None:
            raise SessionNotFoundError("Event has no session id")
        return await self._store.mutate(self.session_id, updater)

    async def update_if_active(self, updater: Updater) -> Any:
        """Like mutate(), but a no-op returning None when the session is unknown."""
        if not self.exists:
            return None
        try:
            return await self.mutate(updater)
        except SessionNotFoundError:
            return None
