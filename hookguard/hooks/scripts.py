"""
External scripts as hook handlers.

The payload is written to the script's stdin as JSON. The script answers
through its exit code:

- 0: proceed. If stdout is a JSON object it may carry {"block": true,
  "reason": "..."} to veto, or {"arguments": {...}} to transform.
- 2: veto; stderr is the reason shown to the user.
- anything else: the script failed; the failure is logged and ignored.
"""

import json
from typing import Any, Optional

from ..logger import logger
from ..process import run_command
from ..errors import HookGuardError, PolicyViolation
from .types import HookPayload


BLOCK_EXIT_CODE = 2
SCRIPT_TIMEOUT = 30.0

INTERPRETERS = {
    "bash": "bash",
    "python": "python3",
}


class ScriptError(HookGuardError):
    """Raised when a hook script exits with an unexpected status."""
    pass


class ScriptHandler:
    """Handler that runs a bash or python script."""

    def __init__(self, script_path: str, script_type: str = "bash", timeout: float = SCRIPT_TIMEOUT):
        if script_type not in INTERPRETERS:
            raise ValueError(f"Invalid script type: {script_type}")
        self.script_path = script_path
        self.script_type = script_type
        self.timeout = timeout

    @property
    def name(self) -> str:
        return f"script:{self.script_path}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScriptHandler):
            return NotImplemented
        return (self.script_path, self.script_type) == (other.script_path, other.script_type)

    def __hash__(self) -> int:
        return hash((self.script_path, self.script_type))

    def __repr__(self) -> str:
        return f"ScriptHandler({self.script_path!r}, {self.script_type!r})"

    @property
    def command(self) -> list:
        return [INTERPRETERS[self.script_type], self.script_path]

    async def __call__(self, payload: HookPayload, state: Any) -> Optional[HookPayload]:
        context_json = json.dumps(payload.to_dict(), default=str)
        result = await run_command(self.command, input=context_json, timeout=self.timeout)

        if result.exit_code == BLOCK_EXIT_CODE:
            reason = result.stderr.strip() or f"Blocked by {self.script_path}"
            raise PolicyViolation(reason)

        if result.exit_code != 0:
            if result.stderr:
                logger.warning(f"[hooks] Script stderr: {result.stderr.strip()}")
            raise ScriptError(f"Script {self.script_path} exited with code {result.exit_code}")

        output = result.stdout.strip()
        if not output:
            return None
        try:
            decision = json.loads(output)
        except json.JSONDecodeError:
            logger.debug(f"[hooks] Script output (not JSON): {output}")
            return None
        if not isinstance(decision, dict):
            return None

        if decision.get("block"):
            raise PolicyViolation(decision.get("reason") or f"Blocked by {self.script_path}")
        if isinstance(decision.get("arguments"), dict):
            return payload.with_arguments(**decision["arguments"])
        return None
