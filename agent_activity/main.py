#!/usr/bin/env python3
"""Agent Activity - live view of what your coding assistants are doing.

Entry point for the CLI application.
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from .config import Settings


def _settings(args) -> Settings:
    return Settings.from_env(Path(args.home) if args.home else None)


def cmd_watch(args):
    """Launch the TUI monitor."""
    from .app import ActivityMonitor

    app = ActivityMonitor(_settings(args), replay=args.replay, glitch=args.glitch)
    app.run()


def cmd_status(args):
    """Print the sessions currently visible in the session directory."""
    from rich.console import Console
    from rich.table import Table

    from .models import now_ms
    from .sources import DirectorySessionFeed

    settings = _settings(args)
    snapshots = DirectorySessionFeed(settings.sessions_dir).discover()
    console = Console()

    if not snapshots:
        console.print(f"No sessions found in {settings.sessions_dir}")
        return

    now = now_ms()
    table = Table(title="Sessions")
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("State", style="bold")
    table.add_column("Detail")
    table.add_column("Project", style="dim")
    table.add_column("Updated", justify="right")

    snapshots.sort(key=lambda s: s.updated_at, reverse=True)
    for snap in snapshots:
        age = (now - snap.updated_at) // 1000 if snap.updated_at else None
        updated = f"{age}s ago" if age is not None else "?"
        state = f"{snap.state.value} (stopped)" if snap.stopped else snap.state.value
        table.add_row(snap.session_id[:16], state, snap.detail, Path(snap.cwd).name if snap.cwd else "", updated)

    console.print(table)


def cmd_classify(args):
    """Classify one JSON event read from stdin."""
    from .engine import ActivityEngine
    from .models import Event, now_ms

    raw = sys.stdin.read()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"Invalid JSON: {e}", file=sys.stderr)
        sys.exit(1)

    event = Event.from_dict(data)
    result = ActivityEngine().classify(event, now_ms())
    out = {"kind": event.kind.value, "state": result.state.value, "detail": result.detail}
    if result.diff_info:
        out["diff"] = {"added": result.diff_info.added, "removed": result.diff_info.removed}
    print(json.dumps(out))


def _parse_json_arg(value: str, name: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        print(f"--{name} is not valid JSON: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_emit(args):
    """Append an event to the spool the monitor tails."""
    from .models import Event, EventKind, ToolOutput, now_ms
    from .sources import append_event
    from .states import SemanticState

    settings = _settings(args)

    if args.kind == "-":
        data = _parse_json_arg(sys.stdin.read(), "stdin")
        event = Event.from_dict(data)
    else:
        tool_input = _parse_json_arg(args.input, "input") if args.input else {}
        event = Event(
            kind=EventKind.parse(args.kind),
            tool_name=args.tool or "",
            tool_input=tool_input if isinstance(tool_input, dict) else {},
            tool_output=ToolOutput(
                stdout=args.stdout or "",
                stderr=args.stderr or "",
                is_error=args.error,
            ),
            session_id=args.session or "",
            model_name=args.model or settings.model_name,
            cwd=args.cwd or str(Path.cwd()),
            message=args.message or "",
            state=SemanticState.parse(args.state) if args.state else None,
            detail=args.detail or "",
        )

    if not event.timestamp_ms:
        event.timestamp_ms = now_ms()
    if not event.model_name:
        event.model_name = settings.model_name
    append_event(settings.events_file, event)


def cmd_report(args):
    """Write a session snapshot directly, for adapters that classify themselves."""
    from .models import SessionSnapshot, now_ms
    from .sources import SessionSnapshotWriter
    from .states import SemanticState

    settings = _settings(args)
    writer = SessionSnapshotWriter(settings.sessions_dir)

    if args.remove:
        writer.remove(args.session)
        return

    snapshot = SessionSnapshot(
        session_id=args.session,
        state=SemanticState.parse(args.state),
        detail=args.detail or "",
        updated_at=now_ms(),
        stopped=args.stopped,
        cwd=args.cwd or str(Path.cwd()),
        model_name=args.model or settings.model_name,
    )
    if not writer.write(snapshot):
        sys.exit(1)


def cmd_stats(args):
    """Show streak and session statistics."""
    from .stats import StatsStore, top_frequent_files

    settings = _settings(args)
    stats = StatsStore(settings.stats_file).load()

    if args.json:
        print(json.dumps(stats.to_dict(), indent=2))
        return

    print("Activity Statistics")
    print("=" * 60)
    print()

    print("Streak:")
    print(f"  Current: {stats.streak}")
    print(f"  Best: {stats.best_streak}")
    if stats.broken_streak_at:
        broken_at = datetime.fromtimestamp(stats.broken_streak_at / 1000).strftime("%Y-%m-%d %H:%M")
        print(f"  Last broken: {stats.broken_streak} (at {broken_at})")
    print()

    print("Totals:")
    print(f"  Tool calls: {stats.total_tool_calls}")
    print(f"  Errors: {stats.total_errors}")
    print()

    if stats.daily.date:
        minutes = stats.daily.cumulative_ms // 60000
        print(f"Today ({stats.daily.date}):")
        print(f"  Sessions: {stats.daily.session_count}")
        print(f"  Active time: {minutes} min")
        print()

    records = stats.records
    print("Records:")
    print(f"  Longest session: {records.longest_session // 60000} min")
    print(f"  Most subagents: {records.most_subagents}")
    print(f"  Most files edited: {records.most_files_edited}")

    top = top_frequent_files(stats.frequent_files)
    if top:
        print()
        print("Most edited files:")
        for name, count in top.items():
            print(f"  {count:>4}  {name}")


def main():
    """Main entry point for agent-activity CLI."""
    parser = argparse.ArgumentParser(
        description="Watch what your AI coding assistants are doing, live",
        prog="agent-activity",
    )
    parser.add_argument(
        "--version", "-v",
        action="store_true",
        help="Show version"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging"
    )
    parser.add_argument(
        "--home",
        help="State directory (default: ~/.agent-activity or $AGENT_ACTIVITY_HOME)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    watch_parser = subparsers.add_parser("watch", help="Launch TUI monitor (default)")
    watch_parser.add_argument("--replay", action="store_true", help="Replay the whole event spool on start")
    watch_parser.add_argument("--glitch", action="store_true", help="Glitchy detail text on errors")

    subparsers.add_parser("status", help="List sessions from the session directory")

    subparsers.add_parser("classify", help="Classify one JSON event from stdin")

    emit_parser = subparsers.add_parser("emit", help="Append an event to the spool")
    emit_parser.add_argument("kind", help="Event kind (tool_start, tool_end, turn_end, ...) or '-' for JSON on stdin")
    emit_parser.add_argument("--tool", "-t", help="Tool name")
    emit_parser.add_argument("--input", "-i", help="Tool input as JSON")
    emit_parser.add_argument("--stdout", help="Tool stdout")
    emit_parser.add_argument("--stderr", help="Tool stderr")
    emit_parser.add_argument("--error", action="store_true", help="Mark the tool call as failed")
    emit_parser.add_argument("--session", "-s", help="Session id")
    emit_parser.add_argument("--model", help="Model name")
    emit_parser.add_argument("--cwd", help="Working directory (default: current)")
    emit_parser.add_argument("--message", "-m", help="Message for error/waiting/custom events")
    emit_parser.add_argument("--state", help="Explicit state for custom events")
    emit_parser.add_argument("--detail", help="Detail for custom events")

    report_parser = subparsers.add_parser("report", help="Write a session snapshot")
    report_parser.add_argument("session", help="Session id")
    report_parser.add_argument("state", nargs="?", default="thinking", help="Semantic state")
    report_parser.add_argument("--detail", "-d", help="Detail text")
    report_parser.add_argument("--stopped", action="store_true", help="Session has stopped")
    report_parser.add_argument("--model", help="Model name")
    report_parser.add_argument("--cwd", help="Working directory (default: current)")
    report_parser.add_argument("--remove", action="store_true", help="Delete the session's snapshot")

    stats_parser = subparsers.add_parser("stats", help="Show streak statistics")
    stats_parser.add_argument("--json", action="store_true", help="Raw JSON")

    args = parser.parse_args()

    handlers = None
    if args.command in (None, "watch"):
        # stderr belongs to the TUI; route records to the textual devtools console
        from textual.logging import TextualHandler
        handlers = [TextualHandler()]
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )

    if args.version:
        from . import __version__
        print(f"agent-activity {__version__}")
        return

    if args.command == "status":
        cmd_status(args)
    elif args.command == "classify":
        cmd_classify(args)
    elif args.command == "emit":
        cmd_emit(args)
    elif args.command == "report":
        cmd_report(args)
    elif args.command == "stats":
        cmd_stats(args)
    elif args.command == "watch":
        cmd_watch(args)
    else:
        watch_args = argparse.Namespace(
            home=args.home,
            replay=getattr(args, "replay", False),
            glitch=getattr(args, "glitch", False),
        )
        cmd_watch(watch_args)


if __name__ == "__main__":
    main()
