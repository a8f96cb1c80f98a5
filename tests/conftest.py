import io
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from rich.console import Console

from hookguard.logger import logger
from hookguard.process import CommandResult


@pytest.fixture
def commands():
    """Replace run_command in every policy module; each mock succeeds with empty output."""
    ok = CommandResult(stdout="", stderr="", exit_code=0)
    with patch("hookguard.policies.formatter.run_command", new_callable=AsyncMock, return_value=ok) as formatter, \
            patch("hookguard.policies.checks.run_command", new_callable=AsyncMock, return_value=ok) as checks, \
            patch("hookguard.policies.reporting.run_command", new_callable=AsyncMock, return_value=ok) as reporting:
        yield SimpleNamespace(formatter=formatter, checks=checks, reporting=reporting)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=100, color_system=None)


@pytest.fixture(autouse=True)
def reset_logger():
    """setup_logging() replaces handlers and stops propagation; undo it between tests."""
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level or logging.NOTSET)
    logger.propagate = propagate
