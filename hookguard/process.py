"""
Running external commands for policy handlers.

Formatters, type checkers, linters and script hooks are all shelled out
to through run_command(). Their output is treated as opaque data: callers
look at the exit code and pass stdout/stderr through for display.
"""

import asyncio
import shlex
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .logger import logger


TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


@dataclass
class CommandResult:
    """Result of an external command."""
    stdout: str
    stderr: str
    exit_code: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_json(self) -> dict:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "error": self.error,
        }


def format_command(template: str, **values: str) -> list:
    """Split a command template and substitute {name} placeholders per argument."""
    return [part.format(**values) for part in shlex.split(template)]


async def run_command(
    command: Union[str, Sequence[str]],
    input: Optional[str] = None,
    cwd: Optional[str] = None,
    timeout: float = 120.0,
) -> CommandResult:
    """
    Run a command without a shell and capture its output.

    A missing executable or a timeout does not raise: it is reported
    through the exit code (127 / 124) and the error field, the same way a
    failing command is.

    Args:
        command: Argument list, or a string split with shlex
        input: Text written to the process' stdin
        cwd: Working directory
        timeout: Seconds before the process is killed

    Returns:
        CommandResult with decoded stdout/stderr and the exit code
    """
    args = shlex.split(command) if isinstance(command, str) else list(command)
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except (FileNotFoundError, PermissionError) as e:
        logger.debug(f"[process] Cannot start {args[0]}: {e}")
        return CommandResult(stdout="", stderr=str(e), exit_code=NOT_FOUND_EXIT_CODE, error=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(
            proc.communicate(input.encode() if input is not None else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning(f"[process] {args[0]} timed out after {timeout}s")
        return CommandResult(
            stdout="",
            stderr="Execution timed out",
            exit_code=TIMEOUT_EXIT_CODE,
            error=f"Execution timed out after {timeout} seconds",
        )
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    return CommandResult(
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        exit_code=proc.returncode,
    )
