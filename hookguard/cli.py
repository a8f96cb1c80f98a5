"""
Command line entry point.

Usage:
    hookguard dispatch tool.before < payload.json   # Run the policies for one event
    hookguard hooks                                 # List registered handlers
    hookguard rules [NAME]                          # Show built-in rule sets
    hookguard match dangerous-commands "rm -rf /"   # Test text against a rule set

Session archive:
    hookguard sessions list
    hookguard sessions show ID
    hookguard sessions delete ID

dispatch prints the outcome as JSON on stdout. When a handler vetoes the
operation it also writes the reason to stderr and exits with status 2, the
convention hosts use for a blocking hook. Set HOOKGUARD_ARCHIVE_DIR to keep
session state between dispatch calls and archive sessions when they end.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .archive import SessionArchive
from .config import GuardConfig
from .hooks import HookEvent, HookManager, HookPayload, HookRegistry
from .hooks.scripts import INTERPRETERS
from .logger import logger, setup_logging
from .policies import load_builtin_rule_sets, register_default_policies
from .rules import matches


BLOCKED_EXIT_CODE = 2


def build_manager(config: GuardConfig, scripts: Optional[List[str]] = None, event: Optional[str] = None,
                  script_type: str = "bash") -> HookManager:
    """Create a manager with the enabled policies (and any script hooks) registered."""
    registry = HookRegistry()
    register_default_policies(registry, config)
    for script in scripts or []:
        registry.register_script(event, script, script_type, timeout=config.handler_timeout)
    registry.freeze()

    archive = SessionArchive(config.archive_dir) if config.archive_dir else None
    return HookManager(registry, handler_timeout=config.handler_timeout, archive=archive)


def read_payload(event: str, stream=None) -> HookPayload:
    stream = stream or sys.stdin
    raw = "" if stream.isatty() else stream.read()
    data = json.loads(raw) if raw.strip() else {}
    if not isinstance(data, dict):
        raise ValueError("Payload must be a JSON object")
    return HookPayload.from_dict(data, event=event)


def handle_dispatch_command(args, config: GuardConfig) -> int:
    """Dispatch one event read from stdin and report the outcome.

    With an archive configured, the session record is loaded before the
    dispatch and saved after it, so a session can span many invocations.
    """
    try:
        payload = read_payload(args.event)
    except ValueError as e:
        logger.error(f"Invalid payload: {e}")
        return 1

    manager = build_manager(config, args.script, payload.event, args.script_type)
    session_id = payload.session_id
    archive = manager.archive if session_id else None

    if archive is not None and payload.event is not HookEvent.SESSION_STARTED:
        record = archive.load_live(session_id)
        if record is not None:
            manager.sessions.restore(record)

    outcome = asyncio.run(manager.dispatch(payload.event, payload))

    if archive is not None:
        if session_id in manager.sessions:
            archive.save_live(manager.sessions.get(session_id))
        else:
            archive.discard_live(session_id)

    print(json.dumps(outcome.to_dict(), default=str))
    if outcome.blocked:
        print(outcome.reason, file=sys.stderr)
        return BLOCKED_EXIT_CODE
    return 0


def handle_hooks_command(args, config: GuardConfig) -> int:
    manager = build_manager(config)
    handlers = manager.registry.list_handlers(args.event)
    if not handlers:
        print("No handlers registered.")
        return 0

    for event, names in handlers.items():
        print(f"\n{event}")
        for position, name in enumerate(names, 1):
            print(f"  {position}. {name}")
    return 0


def handle_rules_command(args, config: GuardConfig) -> int:
    rule_sets = load_builtin_rule_sets(config.rules_file)

    if not args.name:
        print(f"\n{'Name':<28} {'Rules':<6} {'Description'}")
        print("-" * 80)
        for name, rule_set in rule_sets.items():
            print(f"{name:<28} {len(rule_set):<6} {rule_set.description}")
        return 0

    if args.name not in rule_sets:
        print(f"Rule set '{args.name}' not found.")
        return 1

    rule_set = rule_sets[args.name]
    print(f"\n{rule_set.name}: {rule_set.description}")
    print("-" * 50)
    for rule in rule_set:
        print(f"{rule.name} [{rule.kind.value}] {rule.pattern}")
        print(f"    {rule.explanation}")
    return 0


def handle_match_command(args, config: GuardConfig) -> int:
    """Exit 0 when the text matches the rule set, 1 otherwise."""
    rule_sets = load_builtin_rule_sets(config.rules_file)
    if args.rule_set not in rule_sets:
        print(f"Rule set '{args.rule_set}' not found.")
        return 1

    result = matches(rule_sets[args.rule_set], args.text)
    if not result:
        print("No match.")
        return 1
    print(f"Matched {result.rule.name}: {result.rule.explanation}")
    return 0


def handle_sessions_command(args, config: GuardConfig) -> int:
    """Handle session archive commands."""
    archive = SessionArchive(args.archive_dir or config.archive_dir or ".hookguard")

    if args.action == "list":
        sessions = archive.list_sessions()
        if not sessions:
            print("No sessions found.")
            return 0

        print(f"\n{'ID':<40} {'Tools':<8} {'Files':<8} {'Ended'}")
        print("-" * 80)
        for s in sessions:
            print(f"{s.get('id', 'unknown'):<40} {s.get('tool_calls', 0):<8} {s.get('files', 0):<8} {(s.get('ended') or 'N/A')[:19]}")
        return 0

    if not args.session_id:
        print(f"Error: session_id required for '{args.action}' action")
        return 1

    if args.action == "show":
        state = archive.load(args.session_id)
        if not state:
            print(f"Session '{args.session_id}' not found.")
            return 1

        print(f"\nSession: {args.session_id}")
        print("-" * 50)
        print(f"Started: {state.get('started', 'N/A')}")
        print(f"Ended: {state.get('ended', 'N/A')}")
        print(f"Tool calls: {state.get('tool_calls', 0)}")
        print(f"Files created: {len(state.get('files_created') or [])}")
        print(f"Files edited: {len(state.get('files_edited') or [])}")
        print(f"\nReport:\n{state.get('report', 'No report available')}")
        return 0

    if archive.delete(args.session_id):
        print(f"Session '{args.session_id}' deleted.")
        return 0
    print(f"Session '{args.session_id}' not found.")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hookguard",
        description="hookguard - lifecycle hooks and safety policies for coding assistants",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  echo '{"tool_name": "bash", "arguments": {"command": "rm -rf /"}}' | hookguard dispatch tool.before
  hookguard match sensitive-files config/.env
  hookguard sessions list --archive-dir .hookguard
        """
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: HOOKGUARD_LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    dispatch_parser = subparsers.add_parser("dispatch", help="Dispatch one event (payload JSON on stdin)")
    dispatch_parser.add_argument("event", help="Event name, e.g. tool.before")
    dispatch_parser.add_argument(
        "--script",
        action="append",
        default=[],
        help="Extra script hook to run for this event (repeatable)"
    )
    dispatch_parser.add_argument(
        "--script-type",
        choices=sorted(INTERPRETERS),
        default="bash",
        help="Interpreter for --script (default: bash)"
    )

    hooks_parser = subparsers.add_parser("hooks", help="List registered handlers")
    hooks_parser.add_argument("event", nargs="?", help="Only this event")

    rules_parser = subparsers.add_parser("rules", help="Show rule sets")
    rules_parser.add_argument("name", nargs="?", help="Rule set to show in full")

    match_parser = subparsers.add_parser("match", help="Match text against a rule set")
    match_parser.add_argument("rule_set", help="Rule set name")
    match_parser.add_argument("text", help="Command, path or content to test")

    sessions_parser = subparsers.add_parser("sessions", help="Manage archived sessions")
    sessions_parser.add_argument(
        "action",
        choices=["list", "show", "delete"],
        help="Session action"
    )
    sessions_parser.add_argument(
        "session_id",
        nargs="?",
        help="Session ID (for show/delete)"
    )
    sessions_parser.add_argument(
        "--archive-dir",
        type=str,
        default=None,
        help="Archive directory (default: HOOKGUARD_ARCHIVE_DIR or .hookguard)"
    )

    return parser


HANDLERS = {
    "dispatch": handle_dispatch_command,
    "hooks": handle_hooks_command,
    "rules": handle_rules_command,
    "match": handle_match_command,
    "sessions": handle_sessions_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = GuardConfig.from_env()
    except ValueError as e:
        parser.error(str(e))

    setup_logging(args.log_level or config.log_level)

    try:
        return HANDLERS[args.command](args, config)
    except ValueError as e:
        # Unknown event names and malformed rule files
        logger.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
