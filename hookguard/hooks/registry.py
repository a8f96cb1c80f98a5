"""
Hook registry.

Holds, per event, the ordered list of handlers contributed by policies.
The registry is populated at start-up and then only read; freeze() makes
that explicit.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from ..logger import logger
from ..errors import DuplicateHandlerError, RegistryFrozenError
from .scripts import ScriptHandler
from .types import HandlerEffect, HookEvent, HookPayload


# Handlers take (payload, state) and may be sync or async. They return None
# (observe), a new HookPayload or a mapping of argument changes (transform),
# or raise PolicyViolation (veto).
HookHandler = Callable[[HookPayload, Any], Union[None, HookPayload, Dict[str, Any], Awaitable[Any]]]


def handler_name(handler: Callable) -> str:
    name = getattr(handler, "name", None)
    if isinstance(name, str):
        return name
    return getattr(handler, "__name__", None) or type(handler).__name__


@dataclass(frozen=True)
class HandlerEntry:
    """A handler bound to one event, with its position and declared effect."""
    handler: HookHandler
    name: str
    effect: HandlerEffect
    order: int
    sequence: int
    timeout: Optional[float] = None

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.order, self.sequence)


class HookRegistry:
    """
    Registry of hook handlers, keyed by event.

    Example:
        registry = HookRegistry()

        @registry.on(HookEvent.TOOL_BEFORE, effect=HandlerEffect.VETO)
        def block_rm(payload, state):
            if "rm -rf /" in payload.command:
                raise PolicyViolation("Refusing to delete the root directory.")

        registry.register(HookEvent.SESSION_ENDED, report, effect=HandlerEffect.OBSERVE)
        registry.freeze()
    """

    def __init__(self):
        self._handlers: Dict[HookEvent, List[HandlerEntry]] = {
            event: [] for event in HookEvent
        }
        self._sequence = 0
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    def on(
        self,
        event: Union[HookEvent, str],
        **options: Any,
    ) -> Callable[[HookHandler], HookHandler]:
        """
        Decorator to register a handler for a specific event.

        Args:
            event: The hook event to listen for
            **options: Passed to register() (order, effect, name, timeout)
        """
        def decorator(handler: HookHandler) -> HookHandler:
            self.register(event, handler, **options)
            return handler
        return decorator

    def register(
        self,
        event: Union[HookEvent, str],
        handler: HookHandler,
        *,
        order: Optional[int] = None,
        effect: HandlerEffect = HandlerEffect.ANY,
        name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> HandlerEntry:
        """
        Register a handler for a specific event.

        Args:
            event: The hook event to listen for
            handler: Callable taking (payload, state)
            order: Sort key; handlers with equal order run in registration
                order. If omitted the handler runs after every handler
                already registered for the event.
            effect: What the handler may do (observe, veto, transform)
            name: Display name; defaults to the callable's name
            timeout: Per-handler timeout overriding the dispatcher default

        Returns:
            The stored HandlerEntry

        Raises:
            DuplicateHandlerError: If the handler is already registered for the event
            RegistryFrozenError: If the registry has been frozen
            ValueError: If the event name is unknown
        """
        event = HookEvent.parse(event)
        if self._frozen:
            raise RegistryFrozenError(f"Registry is frozen; cannot register {handler_name(handler)}")

        entries = self._handlers[event]
        if any(entry.handler == handler for entry in entries):
            raise DuplicateHandlerError(
                f"Handler {handler_name(handler)} is already registered for {event.value}"
            )

        if order is None:
            order = max((entry.order for entry in entries), default=-1) + 1

        self._sequence += 1
        entry = HandlerEntry(
            handler=handler,
            name=name or handler_name(handler),
            effect=effect,
            order=order,
            sequence=self._sequence,
            timeout=timeout,
        )
        entries.append(entry)
        entries.sort(key=lambda e: e.sort_key)
        logger.debug(f"[hooks] Registered handler for {event.value}: {entry.name}")
        return entry

    def register_script(
        self,
        event: Union[HookEvent, str],
        script_path: str,
        script_type: str = "bash",
        **options: Any,
    ) -> HandlerEntry:
        """
        Register an external script to run as a handler.

        Args:
            event: The hook event to listen for
            script_path: Path to the script file
            script_type: Type of script ("bash" or "python")
            **options: Passed to register()
        """
        handler = ScriptHandler(script_path, script_type)
        return self.register(event, handler, **options)

    def handlers_for(self, event: Union[HookEvent, str]) -> Tuple[HandlerEntry, ...]:
        """Return the handlers for an event, in execution order."""
        return tuple(self._handlers[HookEvent.parse(event)])

    def has_handlers(self, event: Union[HookEvent, str]) -> bool:
        return bool(self._handlers[HookEvent.parse(event)])

    def list_handlers(self, event: Optional[Union[HookEvent, str]] = None) -> Dict[str, List[str]]:
        """
        List all registered handlers.

        Args:
            event: Optional event to filter by

        Returns:
            Dictionary of event name -> handler names in execution order
        """
        result = {}
        events = [HookEvent.parse(event)] if event else list(HookEvent)

        for e in events:
            names = [entry.name for entry in self._handlers[e]]
            if names:
                result[e.value] = names

        return result
