"""
Hook Manager: the lifecycle dispatcher.

The HookManager runs the handlers registered for an event, one at a time
and in registration order, and folds their behaviour into a single Outcome:

- a handler raising PolicyViolation aborts the operation; no later handler runs
- a handler returning a HookPayload (or a mapping of argument changes)
  replaces the payload seen by later handlers
- a handler returning None only observed
- any other exception, or running past its timeout, is logged and recorded
  as a HandlerFailure; the remaining handlers still run
"""

import asyncio
import inspect
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Union

from ..errors import PolicyViolation
from ..logger import log_outcome, logger
from ..session import SessionAccessor, SessionRecord, SessionStore
from .registry import HandlerEntry, HookHandler, HookRegistry
from .types import HandlerEffect, HandlerFailure, HookEvent, HookPayload, Outcome


DEFAULT_HANDLER_TIMEOUT = 30.0


def is_async_handler(handler: HookHandler) -> bool:
    """True for coroutine functions and objects with an async __call__ (script hooks)."""
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


class HookManager:
    """
    Dispatches lifecycle events to registered handlers.

    Example:
        registry = HookRegistry()
        manager = HookManager(registry)

        @manager.on(HookEvent.TOOL_BEFORE)
        async def check_command(payload, state):
            if payload.tool_name == "bash" and "rm -rf /" in payload.command:
                raise PolicyViolation("Refusing to delete the root directory.")

        outcome = await manager.dispatch(
            HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "ls"}
        )
        if outcome.blocked:
            print(outcome.reason)
    """

    def __init__(
        self,
        registry: Optional[HookRegistry] = None,
        sessions: Optional[SessionStore] = None,
        handler_timeout: float = DEFAULT_HANDLER_TIMEOUT,
        archive: Optional[Any] = None,
    ):
        """
        Initialize the hook manager.

        Args:
            registry: Registry to read handlers from (a new one if omitted)
            sessions: Session state store (a new one if omitted)
            handler_timeout: Seconds a handler may run before it is
                abandoned and recorded as a failure
            archive: Optional SessionArchive that receives ended sessions
        """
        self.registry = registry if registry is not None else HookRegistry()
        self.sessions = sessions if sessions is not None else SessionStore()
        self.handler_timeout = handler_timeout
        self.archive = archive

    def on(self, event: Union[HookEvent, str], **options: Any) -> Callable[[HookHandler], HookHandler]:
        """Decorator registering a handler on this manager's registry."""
        return self.registry.on(event, **options)

    async def dispatch(
        self,
        event: Union[HookEvent, str],
        payload: Optional[HookPayload] = None,
        **payload_kwargs: Any,
    ) -> Outcome:
        """
        Run all handlers for one occurrence of an event.

        session.started creates the session record before any handler runs;
        session.ended removes it after the handlers ran and attaches the
        final record to the outcome.

        Args:
            event: The hook event to dispatch
            payload: Optional pre-built payload
            **payload_kwargs: Fields to build the payload if not provided

        Returns:
            Outcome.proceed with the final payload, or Outcome.abort

        Raises:
            DuplicateSessionError: If session.started names an active session
            ValueError: If the event name is unknown
        """
        event = HookEvent.parse(event)
        if payload is None:
            payload = HookPayload(event=event, **payload_kwargs)
        elif payload.event is not event:
            payload = payload.replace(event=event)

        session_id = payload.session_id
        if event is HookEvent.SESSION_STARTED:
            if session_id:
                self.sessions.start_session(session_id, started_at=payload.timestamp)
            else:
                logger.warning("[hooks] session.started without a session id; no state will be kept")

        outcome = await self._run_handlers(event, payload)

        if event is HookEvent.SESSION_STARTED and outcome.blocked and session_id in self.sessions:
            self.sessions.end_session(session_id)
        elif event is HookEvent.SESSION_ENDED:
            outcome.session_record = self._end_session(session_id)

        log_outcome(event.value, outcome)
        return outcome

    async def _run_handlers(self, event: HookEvent, payload: HookPayload) -> Outcome:
        entries = self.registry.handlers_for(event)
        if not entries:
            return Outcome.proceed(payload)

        current = payload
        failures: List[HandlerFailure] = []

        for entry in entries:
            state = SessionAccessor(self.sessions, current.session_id)
            try:
                result = await self._execute_handler(entry, current, state)
            except PolicyViolation as violation:
                if entry.effect & HandlerEffect.VETO:
                    logger.warning(f"[hooks] {entry.name} blocked {event.value}: {violation.reason}")
                    outcome = Outcome.abort(
                        violation.reason, current, rule=violation.rule, handler_name=entry.name
                    )
                    outcome.failures = failures
                    return outcome
                self._record_failure(
                    failures, entry, event, f"veto from observe-only handler ignored: {violation.reason}"
                )
                continue
            except asyncio.TimeoutError:
                timeout = entry.timeout or self.handler_timeout
                self._record_failure(failures, entry, event, f"timed out after {timeout}s", timed_out=True)
                continue
            except Exception as e:
                self._record_failure(failures, entry, event, f"{type(e).__name__}: {e}")
                continue

            current = self._apply_result(entry, event, current, result, failures)

        return Outcome(payload=current, failures=failures)

    async def _execute_handler(
        self,
        entry: HandlerEntry,
        payload: HookPayload,
        state: SessionAccessor,
    ) -> Any:
        """Execute a single handler under its timeout; sync handlers run in a worker thread."""
        timeout = entry.timeout or self.handler_timeout
        return await asyncio.wait_for(self._invoke(entry.handler, payload, state), timeout=timeout)

    @staticmethod
    async def _invoke(handler: HookHandler, payload: HookPayload, state: SessionAccessor) -> Any:
        if is_async_handler(handler):
            result = handler(payload, state)
        else:
            result = await asyncio.to_thread(handler, payload, state)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _apply_result(
        self,
        entry: HandlerEntry,
        event: HookEvent,
        current: HookPayload,
        result: Any,
        failures: List[HandlerFailure],
    ) -> HookPayload:
        if result is None:
            return current

        if isinstance(result, HookPayload):
            modified = result
        elif isinstance(result, Mapping):
            # Handle dict return for convenience: argument changes
            modified = current.with_arguments(**result)
        else:
            logger.debug(f"[hooks] Ignoring {type(result).__name__} returned by {entry.name}")
            return current

        if not entry.effect & HandlerEffect.TRANSFORM:
            self._record_failure(failures, entry, event, "payload returned by non-transforming handler ignored")
            return current

        if modified.event is not event:
            modified = modified.replace(event=event)
        logger.debug(f"[hooks] Payload modified by {entry.name}")
        return modified

    def _record_failure(
        self,
        failures: List[HandlerFailure],
        entry: HandlerEntry,
        event: HookEvent,
        error: str,
        timed_out: bool = False,
    ) -> None:
        logger.error(f"[hooks] Error in handler {entry.name} for {event.value}: {error}")
        failures.append(HandlerFailure(entry.name, event, error, timed_out=timed_out))

    def _end_session(self, session_id: Optional[str]) -> Optional[SessionRecord]:
        if not session_id or session_id not in self.sessions:
            logger.warning(f"[hooks] session.ended for unknown session {session_id!r}")
            return None

        record = self.sessions.end_session(session_id)
        if self.archive is not None:
            try:
                path = self.archive.save(record)
                logger.debug(f"[hooks] Archived session {session_id} to {path}")
            except OSError as e:
                logger.error(f"[hooks] Could not archive session {session_id}: {e}")
        return record
