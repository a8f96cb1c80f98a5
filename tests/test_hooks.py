"""
Tests for the lifecycle hooks module.

Tests cover:
- HookEvent enum (including legacy names)
- HookPayload dataclass
- Outcome dataclass
- HookRegistry class
  - Registration (decorator and direct), ordering, duplicates, freezing
- HookManager class
  - Dispatching, abort short-circuit, transforms
  - Failure isolation and timeouts
  - Declared effects
- Script hook execution (mocked run_command)
"""

import asyncio
import json
import threading
from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest

from hookguard.hooks import (
    DuplicateHandlerError,
    DuplicateRegistrationError,
    HandlerEffect,
    HookEvent,
    HookManager,
    HookPayload,
    HookRegistry,
    Outcome,
    PolicyViolation,
    RegistryFrozenError,
    ScriptHandler,
)
from hookguard.hooks.manager import is_async_handler
from hookguard.process import CommandResult
from hookguard.rules import Rule


class TestHookEvent:
    """Tests for the HookEvent enum."""

    def test_all_events_exist(self):
        """Test that all lifecycle events are defined."""
        assert HookEvent.TOOL_BEFORE.value == "tool.before"
        assert HookEvent.TOOL_AFTER.value == "tool.after"
        assert HookEvent.FILE_CREATED.value == "file.created"
        assert HookEvent.FILE_EDITED.value == "file.edited"
        assert HookEvent.SESSION_STARTED.value == "session.started"
        assert HookEvent.SESSION_ENDED.value == "session.ended"

    def test_event_count(self):
        assert len(HookEvent) == 6

    def test_parse_accepts_values_and_members(self):
        assert HookEvent.parse("tool.before") is HookEvent.TOOL_BEFORE
        assert HookEvent.parse(HookEvent.FILE_EDITED) is HookEvent.FILE_EDITED

    def test_parse_accepts_legacy_names(self):
        """Test the host's original event names still resolve."""
        assert HookEvent.parse("tool.execute.before") is HookEvent.TOOL_BEFORE
        assert HookEvent.parse("tool.execute.after") is HookEvent.TOOL_AFTER
        assert HookEvent.parse("session.complete") is HookEvent.SESSION_ENDED

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Invalid hook event"):
            HookEvent.parse("tool.during")


class TestHookPayload:
    """Tests for the HookPayload dataclass."""

    def test_basic_creation(self):
        """Test creating a payload with minimal data."""
        payload = HookPayload(event=HookEvent.SESSION_STARTED)
        assert payload.event == HookEvent.SESSION_STARTED
        assert isinstance(payload.timestamp, datetime)
        assert payload.session_id is None
        assert payload.tool_name is None
        assert dict(payload.arguments) == {}
        assert payload.result is None
        assert dict(payload.metadata) == {}

    def test_string_event_is_parsed(self):
        payload = HookPayload(event="tool.before")
        assert payload.event is HookEvent.TOOL_BEFORE

    def test_arguments_are_read_only(self):
        """Test that handlers cannot mutate a payload in place."""
        payload = HookPayload(event=HookEvent.TOOL_BEFORE, arguments={"command": "ls"})
        with pytest.raises(TypeError):
            payload.arguments["command"] = "rm -rf /"

    def test_arguments_are_copied(self):
        arguments = {"command": "ls"}
        payload = HookPayload(event=HookEvent.TOOL_BEFORE, arguments=arguments)
        arguments["command"] = "pwd"
        assert payload.command == "ls"

    def test_with_arguments_returns_copy(self):
        payload = HookPayload(event=HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "ls"})
        modified = payload.with_arguments(command="ls -la", cwd="/tmp")
        assert payload.command == "ls"
        assert modified.command == "ls -la"
        assert modified.arguments["cwd"] == "/tmp"
        assert modified.tool_name == "bash"

    def test_target_path(self):
        """Test that the file path is taken from the field or the arguments."""
        assert HookPayload(event="file.edited", file_path="a.ts").target_path == "a.ts"
        assert HookPayload(event="tool.before", arguments={"filePath": "b.ts"}).target_path == "b.ts"
        assert HookPayload(event="tool.before", arguments={"path": "c.ts"}).target_path == "c.ts"
        assert HookPayload(event="tool.before").target_path == ""

    def test_content(self):
        assert HookPayload(event="tool.before", arguments={"content": "x"}).content == "x"
        assert HookPayload(event="tool.before", arguments={"new_string": "y"}).content == "y"
        assert HookPayload(event="tool.before").content == ""

    def test_to_dict(self):
        """Test serialization of HookPayload to dictionary."""
        payload = HookPayload(
            event=HookEvent.TOOL_AFTER,
            tool_name="write",
            result={"status": "success"},
        )
        data = payload.to_dict()
        assert data["event"] == "tool.after"
        assert data["tool_name"] == "write"
        assert data["result"] == {"status": "success"}
        assert "timestamp" in data
        json.dumps(data)

    def test_from_dict(self):
        data = {
            "session_id": "s1",
            "tool_name": "bash",
            "arguments": {"command": "ls"},
            "timestamp": "2024-01-02T03:04:05",
        }
        payload = HookPayload.from_dict(data, event="tool.execute.before")
        assert payload.event is HookEvent.TOOL_BEFORE
        assert payload.session_id == "s1"
        assert payload.command == "ls"
        assert payload.timestamp == datetime(2024, 1, 2, 3, 4, 5)

    def test_from_dict_without_event(self):
        with pytest.raises(ValueError):
            HookPayload.from_dict({"tool_name": "bash"})


class TestOutcome:
    """Tests for the Outcome dataclass."""

    def test_proceed_factory(self):
        payload = HookPayload(event=HookEvent.TOOL_BEFORE)
        outcome = Outcome.proceed(payload)
        assert outcome.blocked is False
        assert outcome.proceeded is True
        assert outcome.reason is None
        assert outcome.payload is payload
        assert outcome.failures == []

    def test_abort_factory(self):
        payload = HookPayload(event=HookEvent.TOOL_BEFORE)
        rule = Rule(r"rm", "Removing files.", name="rm")
        outcome = Outcome.abort("Dangerous", payload, rule=rule, handler_name="guard")
        assert outcome.blocked is True
        assert outcome.reason == "Dangerous"

        data = outcome.to_dict()
        assert data["decision"] == "abort"
        assert data["rule"] == "rm"
        assert data["handler"] == "guard"


class TestHookRegistry:
    """Tests for the HookRegistry class."""

    def test_initialization(self):
        registry = HookRegistry()
        for event in HookEvent:
            assert registry.has_handlers(event) is False

    def test_register_with_decorator(self):
        registry = HookRegistry()

        @registry.on(HookEvent.SESSION_STARTED)
        def on_start(payload, state):
            pass

        assert registry.has_handlers(HookEvent.SESSION_STARTED)
        assert registry.handlers_for(HookEvent.SESSION_STARTED)[0].handler is on_start

    def test_register_direct(self):
        registry = HookRegistry()

        def my_handler(payload, state):
            pass

        entry = registry.register("tool.before", my_handler, effect=HandlerEffect.VETO)
        assert entry.name == "my_handler"
        assert entry.effect == HandlerEffect.VETO
        assert registry.has_handlers(HookEvent.TOOL_BEFORE)

    def test_default_order_is_registration_order(self):
        registry = HookRegistry()

        def first(payload, state):
            pass

        def second(payload, state):
            pass

        registry.register(HookEvent.TOOL_BEFORE, first)
        registry.register(HookEvent.TOOL_BEFORE, second)
        names = [entry.name for entry in registry.handlers_for(HookEvent.TOOL_BEFORE)]
        assert names == ["first", "second"]

    def test_explicit_order(self):
        """Test that explicit order sorts and ties keep registration order."""
        registry = HookRegistry()

        def late(payload, state):
            pass

        def early(payload, state):
            pass

        def early_too(payload, state):
            pass

        registry.register(HookEvent.TOOL_BEFORE, late, order=10)
        registry.register(HookEvent.TOOL_BEFORE, early, order=1)
        registry.register(HookEvent.TOOL_BEFORE, early_too, order=1)
        names = [entry.name for entry in registry.handlers_for(HookEvent.TOOL_BEFORE)]
        assert names == ["early", "early_too", "late"]

    def test_omitted_order_runs_last(self):
        registry = HookRegistry()

        def ordered(payload, state):
            pass

        def appended(payload, state):
            pass

        registry.register(HookEvent.TOOL_BEFORE, ordered, order=50)
        registry.register(HookEvent.TOOL_BEFORE, appended)
        names = [entry.name for entry in registry.handlers_for(HookEvent.TOOL_BEFORE)]
        assert names == ["ordered", "appended"]

    def test_duplicate_registration_rejected(self):
        """Test that registering the same handler twice never overwrites."""
        registry = HookRegistry()

        def handler(payload, state):
            pass

        registry.register(HookEvent.TOOL_BEFORE, handler)
        with pytest.raises(DuplicateHandlerError):
            registry.register(HookEvent.TOOL_BEFORE, handler)
        assert len(registry.handlers_for(HookEvent.TOOL_BEFORE)) == 1

    def test_duplicate_error_hierarchy(self):
        assert issubclass(DuplicateHandlerError, DuplicateRegistrationError)

    def test_same_handler_on_two_events(self):
        registry = HookRegistry()

        def handler(payload, state):
            pass

        registry.register(HookEvent.FILE_CREATED, handler)
        registry.register(HookEvent.FILE_EDITED, handler)
        assert registry.has_handlers(HookEvent.FILE_CREATED)
        assert registry.has_handlers(HookEvent.FILE_EDITED)

    def test_freeze(self):
        registry = HookRegistry()
        registry.freeze()
        assert registry.frozen is True
        with pytest.raises(RegistryFrozenError):
            registry.register(HookEvent.TOOL_BEFORE, lambda payload, state: None)

    def test_handlers_for_is_snapshot(self):
        registry = HookRegistry()
        snapshot = registry.handlers_for(HookEvent.TOOL_BEFORE)
        registry.register(HookEvent.TOOL_BEFORE, lambda payload, state: None)
        assert snapshot == ()
        assert isinstance(registry.handlers_for(HookEvent.TOOL_BEFORE), tuple)

    def test_invalid_event(self):
        registry = HookRegistry()
        with pytest.raises(ValueError, match="Invalid hook event"):
            registry.register("invalid_event", lambda payload, state: None)

    def test_list_handlers(self):
        """Test listing registered handlers."""
        registry = HookRegistry()

        @registry.on(HookEvent.SESSION_STARTED)
        def on_start(payload, state):
            pass

        @registry.on(HookEvent.SESSION_ENDED, name="reporter")
        def on_end(payload, state):
            pass

        handlers = registry.list_handlers()
        assert handlers["session.started"] == ["on_start"]
        assert handlers["session.ended"] == ["reporter"]
        assert "tool.before" not in handlers

        assert list(registry.list_handlers(HookEvent.SESSION_STARTED)) == ["session.started"]


class TestHookManager:
    """Tests for dispatching through the HookManager."""

    @pytest.mark.asyncio
    async def test_dispatch_no_handlers(self):
        """Test dispatching an event with no handlers proceeds unchanged."""
        manager = HookManager()
        payload = HookPayload(event=HookEvent.TOOL_BEFORE, tool_name="bash")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, payload)
        assert outcome.blocked is False
        assert outcome.payload is payload

    @pytest.mark.asyncio
    async def test_dispatch_with_payload_kwargs(self):
        manager = HookManager()
        received = []

        @manager.on(HookEvent.TOOL_BEFORE)
        def on_tool(payload, state):
            received.append(payload)

        await manager.dispatch(HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "echo hello"})

        assert len(received) == 1
        assert received[0].tool_name == "bash"
        assert received[0].command == "echo hello"

    @pytest.mark.asyncio
    async def test_handlers_run_in_order(self):
        manager = HookManager()
        call_order = []

        @manager.on(HookEvent.TOOL_AFTER)
        async def handler1(payload, state):
            call_order.append(1)

        @manager.on(HookEvent.TOOL_AFTER)
        def handler2(payload, state):
            call_order.append(2)

        @manager.on(HookEvent.TOOL_AFTER, order=-1)
        def handler0(payload, state):
            call_order.append(0)

        await manager.dispatch(HookEvent.TOOL_AFTER)
        assert call_order == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_veto_short_circuits(self):
        """Test that a veto stops dispatch before later handlers run."""
        manager = HookManager()
        call_order = []

        @manager.on(HookEvent.TOOL_BEFORE)
        def block_dangerous(payload, state):
            call_order.append("guard")
            if "rm -rf" in payload.command:
                raise PolicyViolation("Dangerous command blocked")

        @manager.on(HookEvent.TOOL_BEFORE)
        def later(payload, state):
            call_order.append("later")

        outcome = await manager.dispatch(
            HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "rm -rf /"}
        )
        assert outcome.blocked is True
        assert outcome.reason == "Dangerous command blocked"
        assert outcome.handler_name == "block_dangerous"
        assert call_order == ["guard"]

        call_order.clear()
        outcome = await manager.dispatch(
            HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "ls"}
        )
        assert outcome.blocked is False
        assert call_order == ["guard", "later"]

    @pytest.mark.asyncio
    async def test_transform_chains(self):
        """Test that each handler sees the previous handler's payload."""
        manager = HookManager()
        seen = []

        @manager.on(HookEvent.TOOL_BEFORE)
        def add_flag(payload, state):
            return payload.with_arguments(command=payload.command + " -la")

        @manager.on(HookEvent.TOOL_BEFORE)
        def observe(payload, state):
            seen.append(payload.command)

        original = HookPayload(event=HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "ls"})
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, original)

        assert seen == ["ls -la"]
        assert outcome.payload.command == "ls -la"
        assert original.command == "ls"

    @pytest.mark.asyncio
    async def test_handler_returning_dict(self):
        """Test that handlers can return argument changes as a dict."""
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE)
        def dict_handler(payload, state):
            return {"timeout": 10}

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, arguments={"command": "make"})
        assert dict(outcome.payload.arguments) == {"command": "make", "timeout": 10}

    @pytest.mark.asyncio
    async def test_transform_keeps_event(self):
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE)
        def retarget(payload, state):
            return payload.replace(event=HookEvent.TOOL_AFTER)

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.payload.event is HookEvent.TOOL_BEFORE

    @pytest.mark.asyncio
    async def test_handler_exception_is_isolated(self):
        """Test that exceptions in handlers are caught, logged and recorded."""
        manager = HookManager()
        reached = []

        @manager.on(HookEvent.TOOL_AFTER)
        def error_handler(payload, state):
            raise ValueError("Test error")

        @manager.on(HookEvent.TOOL_AFTER)
        def normal_handler(payload, state):
            reached.append(True)

        outcome = await manager.dispatch(HookEvent.TOOL_AFTER)
        assert outcome.blocked is False
        assert reached == [True]
        assert len(outcome.failures) == 1
        assert outcome.failures[0].handler_name == "error_handler"
        assert "Test error" in outcome.failures[0].error

    @pytest.mark.asyncio
    async def test_handler_timeout_is_failure(self):
        """Test that a slow async handler is abandoned, not turned into a veto."""
        manager = HookManager(handler_timeout=0.05)
        reached = []

        @manager.on(HookEvent.TOOL_BEFORE)
        async def slow(payload, state):
            await asyncio.sleep(5)

        @manager.on(HookEvent.TOOL_BEFORE)
        def after_slow(payload, state):
            reached.append(True)

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.blocked is False
        assert reached == [True]
        assert outcome.failures[0].timed_out is True

    @pytest.mark.asyncio
    async def test_per_handler_timeout(self):
        manager = HookManager(handler_timeout=10)

        @manager.on(HookEvent.TOOL_BEFORE, timeout=0.05)
        async def slow(payload, state):
            await asyncio.sleep(5)

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.failures[0].timed_out is True
        assert "0.05" in outcome.failures[0].error

    @pytest.mark.asyncio
    async def test_blocking_sync_handler_times_out(self):
        """Test that a sync handler stuck in a blocking call is abandoned too."""
        manager = HookManager(handler_timeout=0.2)
        release = threading.Event()
        reached = []

        @manager.on(HookEvent.TOOL_BEFORE)
        def blocking(payload, state):
            release.wait(5)

        @manager.on(HookEvent.TOOL_BEFORE)
        def after_blocking(payload, state):
            reached.append(True)

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        finally:
            release.set()

        assert loop.time() - started < 1
        assert reached == [True]
        assert outcome.failures[0].handler_name == "blocking"
        assert outcome.failures[0].timed_out is True

    def test_is_async_handler(self):
        async def coroutine_handler(payload, state):
            pass

        def plain_handler(payload, state):
            pass

        assert is_async_handler(coroutine_handler)
        assert is_async_handler(ScriptHandler("hooks/check.sh"))
        assert not is_async_handler(plain_handler)

    @pytest.mark.asyncio
    async def test_observe_only_veto_is_failure(self):
        """Test that an observer cannot block the operation."""
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE, effect=HandlerEffect.OBSERVE)
        def observer(payload, state):
            raise PolicyViolation("no")

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.blocked is False
        assert outcome.failures[0].handler_name == "observer"

    @pytest.mark.asyncio
    async def test_veto_only_transform_is_failure(self):
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE, effect=HandlerEffect.VETO)
        def guard(payload, state):
            return payload.with_arguments(command="rm -rf /")

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, arguments={"command": "ls"})
        assert outcome.payload.command == "ls"
        assert len(outcome.failures) == 1

    @pytest.mark.asyncio
    async def test_abort_keeps_earlier_failures(self):
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE)
        def broken(payload, state):
            raise RuntimeError("boom")

        @manager.on(HookEvent.TOOL_BEFORE)
        def guard(payload, state):
            raise PolicyViolation("blocked")

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.blocked is True
        assert [f.handler_name for f in outcome.failures] == ["broken"]

    @pytest.mark.asyncio
    async def test_violation_rule_reaches_outcome(self):
        manager = HookManager()
        rule = Rule(r"printenv", "Prints secrets.", name="printenv")

        @manager.on(HookEvent.TOOL_BEFORE)
        def guard(payload, state):
            raise PolicyViolation.from_rule(rule)

        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)
        assert outcome.rule is rule
        assert outcome.reason == "Prints secrets."

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        manager = HookManager()

        @manager.on(HookEvent.TOOL_BEFORE)
        async def cancelled(payload, state):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await manager.dispatch(HookEvent.TOOL_BEFORE)


class TestSessionLifecycle:
    """Tests for session records created and removed by the dispatcher."""

    @pytest.mark.asyncio
    async def test_session_started_creates_record(self):
        manager = HookManager()
        seen = []

        @manager.on(HookEvent.SESSION_STARTED)
        def on_start(payload, state):
            seen.append(state.exists)

        await manager.dispatch(HookEvent.SESSION_STARTED, session_id="s1")
        assert seen == [True]
        assert "s1" in manager.sessions

    @pytest.mark.asyncio
    async def test_session_ended_returns_record(self):
        manager = HookManager()

        @manager.on(HookEvent.TOOL_AFTER)
        async def count(payload, state):
            def bump(record):
                record.tool_calls += 1
            await state.update_if_active(bump)

        await manager.dispatch(HookEvent.SESSION_STARTED, session_id="s1")
        await manager.dispatch(HookEvent.TOOL_AFTER, session_id="s1", tool_name="bash")
        outcome = await manager.dispatch(HookEvent.SESSION_ENDED, session_id="s1")

        assert outcome.session_record.tool_calls == 1
        assert outcome.session_record.ended_at is not None
        assert "s1" not in manager.sessions

    @pytest.mark.asyncio
    async def test_session_ended_unknown(self):
        manager = HookManager()
        outcome = await manager.dispatch(HookEvent.SESSION_ENDED, session_id="ghost")
        assert outcome.session_record is None
        assert outcome.blocked is False

    @pytest.mark.asyncio
    async def test_blocked_session_start_removes_record(self):
        manager = HookManager()

        @manager.on(HookEvent.SESSION_STARTED)
        def refuse(payload, state):
            raise PolicyViolation("not today")

        outcome = await manager.dispatch(HookEvent.SESSION_STARTED, session_id="s1")
        assert outcome.blocked is True
        assert "s1" not in manager.sessions

    @pytest.mark.asyncio
    async def test_session_ended_archives(self):
        archive = Mock()
        archive.save.return_value = "path"
        manager = HookManager(archive=archive)

        await manager.dispatch(HookEvent.SESSION_STARTED, session_id="s1")
        await manager.dispatch(HookEvent.SESSION_ENDED, session_id="s1")
        archive.save.assert_called_once()
        assert archive.save.call_args[0][0].session_id == "s1"


class TestScriptHooks:
    """Tests for script-based hooks (bash/python)."""

    def test_register_script_hook(self):
        registry = HookRegistry()
        entry = registry.register_script(HookEvent.SESSION_STARTED, "/path/to/script.sh", "bash")
        assert registry.has_handlers(HookEvent.SESSION_STARTED)
        assert entry.name == "script:/path/to/script.sh"

    def test_register_script_invalid_type(self):
        """Test that invalid script types raise an error."""
        registry = HookRegistry()
        with pytest.raises(ValueError, match="Invalid script type"):
            registry.register_script(HookEvent.SESSION_STARTED, "/path/to/script.rb", "ruby")

    def test_register_script_twice(self):
        registry = HookRegistry()
        registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh")
        with pytest.raises(DuplicateHandlerError):
            registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh")

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_execute_bash_script(self, mock_run):
        mock_run.return_value = CommandResult(stdout='{"block": false}', stderr="", exit_code=0)

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh", "bash")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)

        mock_run.assert_awaited_once()
        assert mock_run.call_args[0][0] == ["bash", "/path/to/hook.sh"]
        assert outcome.blocked is False

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_execute_python_script_blocks(self, mock_run):
        mock_run.return_value = CommandResult(
            stdout='{"block": true, "reason": "Python blocked"}', stderr="", exit_code=0
        )

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.py", "python")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)

        assert mock_run.call_args[0][0] == ["python3", "/path/to/hook.py"]
        assert outcome.blocked is True
        assert outcome.reason == "Python blocked"

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_exit_code_two_blocks_with_stderr(self, mock_run):
        mock_run.return_value = CommandResult(stdout="", stderr="Nope: protected file\n", exit_code=2)

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)

        assert outcome.blocked is True
        assert outcome.reason == "Nope: protected file"

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_script_transforms_arguments(self, mock_run):
        mock_run.return_value = CommandResult(
            stdout='{"arguments": {"command": "ls -la"}}', stderr="", exit_code=0
        )

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE, arguments={"command": "ls"})

        assert outcome.payload.command == "ls -la"

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_script_receives_payload_json(self, mock_run):
        """Test that script receives the payload as JSON via stdin."""
        mock_run.return_value = CommandResult(stdout="", stderr="", exit_code=0)

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/path/to/hook.sh")
        await manager.dispatch(HookEvent.TOOL_BEFORE, tool_name="bash", arguments={"command": "test"})

        input_json = json.loads(mock_run.call_args[1]["input"])
        assert input_json["event"] == "tool.before"
        assert input_json["tool_name"] == "bash"
        assert input_json["arguments"] == {"command": "test"}

    @pytest.mark.asyncio
    @patch("hookguard.hooks.scripts.run_command", new_callable=AsyncMock)
    async def test_script_failure_is_isolated(self, mock_run):
        """Test that a crashing or missing script never blocks."""
        mock_run.return_value = CommandResult(stdout="", stderr="not found", exit_code=127)

        manager = HookManager()
        manager.registry.register_script(HookEvent.TOOL_BEFORE, "/nonexistent.sh")
        outcome = await manager.dispatch(HookEvent.TOOL_BEFORE)

        assert outcome.blocked is False
        assert outcome.failures[0].handler_name == "script:/nonexistent.sh"

    def test_script_handler_equality(self):
        assert ScriptHandler("/a.sh") == ScriptHandler("/a.sh")
        assert ScriptHandler("/a.sh") != ScriptHandler("/a.sh", "python")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
