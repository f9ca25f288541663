"""Tests for the engine that ties classification, stats and sessions together."""

import random

import pytest

from agent_activity.config import MILESTONE_DISPLAY_MS
from agent_activity.engine import DEFAULT_SESSION_ID, ActivityEngine
from agent_activity.models import Event, EventKind, SessionSnapshot, ToolOutput
from agent_activity.sources import (
    DirectorySessionFeed,
    JsonlEventSource,
    SessionSnapshotWriter,
    append_event,
)
from agent_activity.states import SemanticState
from agent_activity.stats import StatsStore

S = SemanticState


def tool_start(tool, tool_input=None, session="a", **kwargs):
    return Event(EventKind.TOOL_START, tool_name=tool, tool_input=tool_input or {}, session_id=session, **kwargs)


def tool_end(tool, tool_input=None, stdout="", stderr="", is_error=False, session="a"):
    return Event(
        EventKind.TOOL_END,
        tool_name=tool,
        tool_input=tool_input or {},
        tool_output=ToolOutput(stdout=stdout, stderr=stderr, is_error=is_error),
        session_id=session,
    )


@pytest.fixture
def engine():
    return ActivityEngine(now=0)


class TestHandleEvent:
    """Tests for turning single events into state."""

    def test_tool_start_drives_primary(self, engine):
        result = engine.handle_event(tool_start("Edit", {"file_path": "/src/App.tsx"}), now=0)
        assert result.state == S.CODING
        assert engine.arbiter.primary_session_id == "a"
        assert engine.arbiter.primary.presented == S.CODING
        assert engine.stats.total_tool_calls == 1
        assert engine.stats.session.files_edited == ["App.tsx"]

    def test_outcome_waits_for_work(self, engine):
        engine.handle_event(tool_start("Edit", {"file_path": "a.py"}), now=0)
        engine.handle_event(
            tool_end("Edit", {"file_path": "a.py", "old_string": "x", "new_string": "y"}), now=300
        )
        primary = engine.arbiter.primary
        assert primary.presented == S.CODING
        assert primary.pending.state == S.PROUD
        engine.tick(6000)
        assert primary.presented == S.PROUD
        assert engine.last_diff.added == 1

    def test_successes_build_streak(self, engine):
        for i in range(10):
            engine.handle_event(tool_end("Read", {"file_path": "a.py"}), now=i * 100)
        assert engine.stats.streak == 10
        assert engine.stats.recent_milestone.value == 10

    def test_failure_breaks_streak(self, engine):
        engine.handle_event(tool_end("Read"), now=0)
        engine.handle_event(tool_end("Bash", {"command": "make"}, stderr="fatal: boom"), now=100)
        assert engine.stats.streak == 0
        assert engine.stats.broken_streak == 1
        assert engine.arbiter.primary.presented == S.ERROR

    def test_turn_end_stops_session(self, engine):
        engine.handle_event(tool_start("Bash", {"command": "ls"}), now=0)
        result = engine.handle_event(Event(EventKind.TURN_END, session_id="a"), now=100)
        assert result.state == S.HAPPY
        assert result.detail == "all done!"
        assert engine.arbiter.primary_stopped
        assert engine.arbiter.primary.pending.state == S.HAPPY

    def test_error_event(self, engine):
        result = engine.handle_event(Event(EventKind.ERROR, session_id="a", message="API exploded"), now=0)
        assert result.state == S.ERROR
        assert result.detail == "API exploded"
        assert engine.stats.total_errors == 1

    def test_error_event_without_message(self, engine):
        result = engine.handle_event(Event(EventKind.ERROR, session_id="a"), now=0)
        assert result.detail == "something went wrong"

    def test_waiting(self, engine):
        result = engine.handle_event(Event(EventKind.WAITING, session_id="a"), now=0)
        assert result.state == S.WAITING
        assert result.detail == "needs attention"

    def test_session_start_takes_over(self, engine):
        engine.handle_event(tool_start("Bash", {"command": "ls"}), now=0)
        result = engine.handle_event(Event(EventKind.SESSION_START, session_id="b"), now=100)
        assert result.state == S.STARTING
        assert engine.arbiter.primary_session_id == "b"
        assert "a" in engine.arbiter.records

    def test_custom_with_state(self, engine):
        event = Event(EventKind.CUSTOM, session_id="a", state=S.RESPONDING, detail="writing answer")
        result = engine.handle_event(event, now=0)
        assert result.state == S.RESPONDING
        assert result.detail == "writing answer"

    def test_custom_defaults_to_thinking(self, engine):
        assert engine.handle_event(Event(EventKind.CUSTOM, session_id="a"), now=0).state == S.THINKING

    def test_missing_session_id(self, engine):
        engine.handle_event(tool_start("Read", session=""), now=0)
        assert engine.arbiter.primary_session_id == DEFAULT_SESSION_ID

    def test_second_session_is_secondary(self, engine):
        engine.handle_event(tool_start("Edit", {"file_path": "a.py"}, cwd="/w/api"), now=0)
        engine.handle_event(tool_start("Grep", {"pattern": "x"}, session="b", cwd="/w/web"), now=100)
        snap = engine.snapshot(now=200)
        assert snap.primary_session_id == "a"
        assert snap.primary.presented == S.CODING
        assert [view.session_id for view in snap.sessions] == ["b"]
        assert snap.sessions[0].display.presented == S.SEARCHING
        assert snap.sessions[0].label == "web"

    def test_flavor_only_touches_detail(self):
        engine = ActivityEngine(flavor_rng=random.Random(1), now=0)
        result = engine.handle_event(
            tool_end("Bash", {"command": "ls"}, stderr="ls: permission denied"), now=0
        )
        assert result.state == S.ERROR
        assert len(result.detail) == len("permission denied")

    def test_handoff_shows_new_session_work(self, engine):
        """After a stopped primary hands off, the newcomer's work is what shows."""
        engine.handle_event(tool_start("Edit", {"file_path": "a.py"}), now=0)
        engine.handle_event(Event(EventKind.TURN_END, session_id="a"), now=500)
        engine.handle_event(tool_start("Read", {"file_path": "b.py"}, session="b"), now=1000)
        for t in range(1100, 6600, 100):
            engine.tick(t)

        primary = engine.arbiter.primary
        assert engine.arbiter.primary_session_id == "b"
        assert primary.presented == S.READING
        assert "b.py" in primary.detail
        assert primary.pending is None

        outgoing = engine.arbiter.machines["a"]
        assert outgoing.presented == S.HAPPY
        assert outgoing.detail == "all done!"


class TestTick:
    """Tests for the per-frame loop over real files."""

    @pytest.fixture
    def spool(self, tmp_path):
        return tmp_path / "events.jsonl"

    @pytest.fixture
    def sessions_dir(self, tmp_path):
        return tmp_path / "sessions"

    def test_reads_spool(self, spool):
        engine = ActivityEngine(sources=[JsonlEventSource(spool)], now=0)
        append_event(spool, tool_start("Read", {"file_path": "a.py"}))
        append_event(spool, tool_start("Read", {"file_path": "b.py"}, session="b"))
        assert engine.tick(10) == 2
        assert engine.tick(20) == 0
        assert engine.arbiter.primary.presented == S.READING
        assert "b" in engine.arbiter.records

    def test_silent_secondary_pruned(self, sessions_dir):
        """A secondary silent for 125s while active is dropped, file and all."""
        writer = SessionSnapshotWriter(sessions_dir)
        writer.write(SessionSnapshot("b", S.CODING, "editing", updated_at=1000))
        engine = ActivityEngine(feed=DirectorySessionFeed(sessions_dir), now=0)
        engine.handle_event(tool_start("Read"), now=0)

        engine.tick(1000)
        assert "b" in engine.arbiter.records

        engine.handle_event(tool_start("Read"), now=125_000)
        engine.tick(126_000)
        assert "b" not in engine.arbiter.records
        assert not writer.path_for("b").exists()

    def test_vanished_file_drops_session(self, sessions_dir):
        writer = SessionSnapshotWriter(sessions_dir)
        writer.write(SessionSnapshot("b", S.CODING, "", updated_at=1000))
        engine = ActivityEngine(feed=DirectorySessionFeed(sessions_dir), now=0)
        engine.tick(1000)
        assert "b" in engine.arbiter.records

        writer.remove("b")
        engine.tick(2000)
        assert "b" in engine.arbiter.records
        engine.tick(3000)
        assert "b" not in engine.arbiter.records

    def test_request_discovery(self, sessions_dir):
        engine = ActivityEngine(feed=DirectorySessionFeed(sessions_dir), now=0)
        engine.tick(0)
        SessionSnapshotWriter(sessions_dir).write(SessionSnapshot("b", S.CODING, "", updated_at=100))
        engine.tick(100)
        assert "b" not in engine.arbiter.records
        engine.request_discovery()
        engine.tick(200)
        assert "b" in engine.arbiter.records

    def test_stats_saved(self, tmp_path):
        store = StatsStore(tmp_path / "stats.json")
        engine = ActivityEngine(stats_store=store, now=0)
        engine.handle_event(tool_end("Read"), now=0)
        engine.tick(10)
        assert store.load().streak == 1

    def test_stats_loaded_from_store(self, tmp_path):
        store = StatsStore(tmp_path / "stats.json")
        first = ActivityEngine(stats_store=store, now=0)
        first.handle_event(tool_end("Read"), now=0)
        first.close()
        second = ActivityEngine(stats_store=store, now=0)
        assert second.stats.streak == 1

    def test_milestone_clears_without_events(self, tmp_path):
        store = StatsStore(tmp_path / "stats.json")
        engine = ActivityEngine(stats_store=store, now=0)
        for i in range(10):
            engine.handle_event(tool_end("Read", {"file_path": "a.py"}), now=i * 100)
        engine.tick(5000)
        assert engine.stats.recent_milestone.value == 10

        engine.tick(900 + MILESTONE_DISPLAY_MS + 1)
        assert engine.stats.recent_milestone is None
        assert engine.snapshot(now=60_000).stats.recent_milestone is None
        assert store.load().recent_milestone is None
        assert engine.stats.streak == 10

    def test_watch_paths(self, spool, sessions_dir):
        engine = ActivityEngine(
            sources=[JsonlEventSource(spool)], feed=DirectorySessionFeed(sessions_dir), now=0
        )
        assert engine.watch_paths() == [spool, sessions_dir]

    def test_spool_change_wants_tick(self, spool, sessions_dir):
        engine = ActivityEngine(
            sources=[JsonlEventSource(spool)], feed=DirectorySessionFeed(sessions_dir), now=0
        )
        assert engine.notice_change(spool)
        assert not engine.notice_change(spool.parent / "unrelated.txt")

    def test_session_file_change_schedules_discovery(self, spool, sessions_dir):
        engine = ActivityEngine(
            sources=[JsonlEventSource(spool)], feed=DirectorySessionFeed(sessions_dir), now=0
        )
        engine.tick(0)
        SessionSnapshotWriter(sessions_dir).write(SessionSnapshot("b", S.CODING, "", updated_at=100))
        engine.tick(100)
        assert "b" not in engine.arbiter.records

        assert not engine.notice_change(sessions_dir / "b.json")
        engine.tick(200)
        assert "b" in engine.arbiter.records
