"""Tests for event sources, session feeds and configuration."""

import json

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from agent_activity.config import Settings, safe_filename
from agent_activity.engine import ActivityEngine
from agent_activity.models import Event, EventKind, SessionSnapshot
from agent_activity.sources import (
    DirectorySessionFeed,
    JsonlEventSource,
    PathWatcher,
    SessionSnapshotWriter,
    append_event,
    get_feed,
    get_source,
)
from agent_activity.states import SemanticState
from agent_activity.sources.watcher import _ChangeHandler

S = SemanticState


class TestJsonlEventSource:
    """Tests for tailing the event spool."""

    @pytest.fixture
    def spool(self, tmp_path):
        return tmp_path / "events.jsonl"

    def test_missing_file(self, spool):
        assert JsonlEventSource(spool).poll() == []

    def test_reads_appended_events(self, spool):
        source = JsonlEventSource(spool)
        append_event(spool, Event(EventKind.TOOL_START, tool_name="Edit", session_id="a"))
        events = source.poll()
        assert len(events) == 1
        assert events[0].kind == EventKind.TOOL_START
        assert events[0].tool_name == "Edit"
        assert source.poll() == []

    def test_partial_line_held_back(self, spool):
        source = JsonlEventSource(spool)
        spool.write_text('{"kind": "tool_start", "tool_name": "Read"}\n{"kind": "turn')
        assert [e.kind for e in source.poll()] == [EventKind.TOOL_START]
        with open(spool, "a") as f:
            f.write('_end", "session_id": "a"}\n')
        events = source.poll()
        assert [e.kind for e in events] == [EventKind.TURN_END]
        assert events[0].session_id == "a"

    def test_garbled_lines_skipped(self, spool):
        spool.write_text('not json\n[1, 2]\n\n{"kind": "waiting"}\n')
        assert [e.kind for e in JsonlEventSource(spool).poll()] == [EventKind.WAITING]

    def test_truncation_restarts(self, spool):
        source = JsonlEventSource(spool)
        spool.write_text('{"kind": "tool_start"}\n{"kind": "tool_end"}\n')
        assert len(source.poll()) == 2
        spool.write_text('{"kind": "error"}\n')
        assert [e.kind for e in source.poll()] == [EventKind.ERROR]

    def test_from_end_skips_history(self, spool):
        spool.write_text('{"kind": "tool_start"}\n')
        source = JsonlEventSource(spool, from_end=True)
        assert source.poll() == []
        append_event(spool, Event(EventKind.WAITING))
        assert [e.kind for e in source.poll()] == [EventKind.WAITING]

    def test_hook_payload(self, spool):
        """Raw hook JSON is understood as well as normalized events."""
        spool.write_text(json.dumps({
            "hook_event_name": "PostToolUse",
            "tool_name": "Bash",
            "tool_input": {"command": "npm test"},
            "tool_response": {"stdout": "3 passed", "stderr": ""},
            "session_id": "s1",
        }) + "\n")
        event = JsonlEventSource(spool).poll()[0]
        assert event.kind == EventKind.TOOL_END
        assert event.tool_output.stdout == "3 passed"
        assert event.session_id == "s1"


class TestDirectorySessionFeed:
    """Tests for session snapshot discovery."""

    @pytest.fixture
    def sessions_dir(self, tmp_path):
        return tmp_path / "sessions"

    def test_missing_directory(self, sessions_dir):
        assert DirectorySessionFeed(sessions_dir).discover() == []

    def test_round_trip_through_writer(self, sessions_dir):
        writer = SessionSnapshotWriter(sessions_dir)
        assert writer.write(SessionSnapshot("b", S.TESTING, "npm test", 1000, False, "/w/web", "codex"))
        [snap] = DirectorySessionFeed(sessions_dir).discover()
        assert snap.session_id == "b"
        assert snap.state == S.TESTING
        assert snap.updated_at == 1000
        assert snap.cwd == "/w/web"
        assert snap.model_name == "codex"

    def test_excludes_primary(self, sessions_dir):
        writer = SessionSnapshotWriter(sessions_dir)
        writer.write(SessionSnapshot("a", S.CODING))
        writer.write(SessionSnapshot("b", S.CODING))
        ids = [s.session_id for s in DirectorySessionFeed(sessions_dir).discover(exclude_id="a")]
        assert ids == ["b"]

    def test_bad_files_skipped(self, sessions_dir):
        sessions_dir.mkdir()
        (sessions_dir / "broken.json").write_text("{nope")
        (sessions_dir / "list.json").write_text("[]")
        (sessions_dir / "c.json").write_text('{"state": "mystery"}')
        [snap] = DirectorySessionFeed(sessions_dir).discover()
        assert snap.session_id == "c"
        assert snap.state == S.IDLE

    def test_forget_removes_file(self, sessions_dir):
        writer = SessionSnapshotWriter(sessions_dir)
        writer.write(SessionSnapshot("b/odd id", S.CODING))
        feed = DirectorySessionFeed(sessions_dir)
        feed.forget("b/odd id")
        assert feed.discover() == []
        feed.forget("b/odd id")


class TestRegistry:
    """Tests for looking up sources and feeds by name."""

    def test_get_source(self, tmp_path):
        source = get_source("jsonl", tmp_path / "e.jsonl")
        assert isinstance(source, JsonlEventSource)
        assert source.watch_paths() == [tmp_path / "e.jsonl"]

    def test_get_feed(self, tmp_path):
        assert isinstance(get_feed("directory", tmp_path), DirectorySessionFeed)

    def test_unknown(self):
        assert get_source("carrier-pigeon") is None
        assert get_feed("carrier-pigeon") is None


class TestPathWatcher:
    """Tests for change routing, without starting an observer."""

    def test_callback_receives_path(self, tmp_path):
        seen = []
        watcher = PathWatcher([tmp_path], callback=seen.append)
        watcher._on_change(tmp_path / "x.json")
        assert seen == [tmp_path / "x.json"]

    def test_handler_matches_files_and_directories(self, tmp_path):
        root = tmp_path.resolve()
        seen = []
        handler = _ChangeHandler({root / "events.jsonl", root / "sessions"}, seen.append)
        handler.on_any_event(FileModifiedEvent(str(root / "events.jsonl")))
        handler.on_any_event(FileModifiedEvent(str(root / "sessions" / "b.json")))
        handler.on_any_event(FileModifiedEvent(str(root / "notes.txt")))
        assert seen == [root / "events.jsonl", root / "sessions" / "b.json"]

    def test_handler_follows_atomic_rename(self, tmp_path):
        root = tmp_path.resolve()
        seen = []
        handler = _ChangeHandler({root / "sessions"}, seen.append)
        handler.on_any_event(FileModifiedEvent(str(root / "sessions" / "b.tmp")))
        handler.on_any_event(FileMovedEvent(str(root / "sessions" / "b.tmp"), str(root / "sessions" / "b.json")))
        assert seen == [root / "sessions" / "b.json"]

    def test_stop_without_start(self, tmp_path):
        PathWatcher([tmp_path]).stop()


class TestSettings:
    """Tests for resolving locations."""

    def test_home_override(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AGENT_ACTIVITY_EVENTS", raising=False)
        settings = Settings.from_env(tmp_path)
        assert settings.events_file == tmp_path / "events.jsonl"
        assert settings.sessions_dir == tmp_path / "sessions"
        assert settings.stats_file == tmp_path / "stats.json"

    def test_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AGENT_ACTIVITY_HOME", str(tmp_path))
        monkeypatch.setenv("AGENT_ACTIVITY_EVENTS", str(tmp_path / "spool.jsonl"))
        monkeypatch.setenv("AGENT_ACTIVITY_MODEL", "codex")
        settings = Settings.from_env()
        assert settings.state_dir == tmp_path
        assert settings.events_file == tmp_path / "spool.jsonl"
        assert settings.model_name == "codex"

    def test_session_file_is_safe(self, tmp_path):
        settings = Settings.from_env(tmp_path)
        assert settings.session_file("../x y").name == "___x_y.json"
        assert safe_filename("a" * 100) == "a" * 64

    def test_engine_from_settings(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AGENT_ACTIVITY_EVENTS", raising=False)
        settings = Settings.from_env(tmp_path)
        append_event(settings.events_file, Event(EventKind.TOOL_START, tool_name="Read", session_id="a"))
        engine = ActivityEngine.from_settings(settings, now=0)
        assert engine.tick(0) == 1
        engine.close()
        assert settings.stats_file.exists()
