"""
Tool execution wrapped in the hook lifecycle.

ToolRunner is the seam between a host's tool pipeline and the dispatcher:

    tool.before -> (abort? stop) -> execute tool -> tool.after -> file.created / file.edited

tool.after handlers only run once the tool has actually finished. If the
tool is cancelled, no further lifecycle events are dispatched for it.
"""

import asyncio
import inspect
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .hooks.manager import HookManager
from .hooks.types import HookEvent, HookPayload, Outcome
from .logger import logger


class ToolNotFoundError(LookupError):
    """Raised when the host asks for a tool that is not registered."""
    pass


@dataclass
class ToolRun:
    """What happened to one tool invocation."""
    tool_name: str
    before: Outcome
    after: Optional[Outcome] = None
    result: Any = None
    executed: bool = False

    @property
    def blocked(self) -> bool:
        return self.before.blocked

    @property
    def reason(self) -> Optional[str]:
        return self.before.reason


class ToolRunner:
    """
    Runs host tools through the hook lifecycle.

    Example:
        runner = ToolRunner(manager, {"bash": run_bash, "write": write_file})
        run = await runner.run("bash", {"command": "git status"}, session_id="s1")
        if run.blocked:
            print(run.reason)
    """

    def __init__(
        self,
        manager: HookManager,
        tools: Dict[str, Callable[..., Any]],
        write_tools: Tuple[str, ...] = ("write", "edit"),
    ):
        self.manager = manager
        self.tools = tools
        self.write_tools = write_tools

    async def run(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> ToolRun:
        """
        Execute one tool call under the hook lifecycle.

        Args:
            tool_name: Registered tool to execute
            arguments: Keyword arguments for the tool
            session_id: Host session the call belongs to

        Returns:
            ToolRun with both outcomes and the tool's result

        Raises:
            ToolNotFoundError: If the tool is not registered
            asyncio.CancelledError: If the tool was cancelled; tool.after is not dispatched
            Exception: Whatever the tool raised, after tool.after saw the error
        """
        if tool_name not in self.tools:
            raise ToolNotFoundError(f"Tool {tool_name} doesn't exist.")

        before = await self.manager.dispatch(
            HookEvent.TOOL_BEFORE,
            HookPayload(
                event=HookEvent.TOOL_BEFORE,
                session_id=session_id,
                tool_name=tool_name,
                arguments=arguments or {},
            ),
        )
        run = ToolRun(tool_name=tool_name, before=before)
        if before.blocked:
            logger.warning(f"[hooks] Tool '{tool_name}' blocked: {before.reason}")
            return run

        payload = before.payload
        file_path = payload.target_path if tool_name in self.write_tools else ""
        existed = bool(file_path) and os.path.exists(file_path)

        try:
            result = self.tools[tool_name](**payload.arguments)
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            logger.info(f"[hooks] Tool '{tool_name}' cancelled; skipping tool.after")
            raise
        except Exception as e:
            await self.manager.dispatch(HookEvent.TOOL_AFTER, payload.replace(error=str(e)))
            raise

        run.executed = True
        run.result = result
        run.after = await self.manager.dispatch(HookEvent.TOOL_AFTER, payload.replace(result=result))

        if file_path:
            file_event = HookEvent.FILE_EDITED if existed else HookEvent.FILE_CREATED
            await self.manager.dispatch(file_event, payload.replace(file_path=file_path))

        return run
