"""Wires classification, stats and arbitration into one tick-driven engine."""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .arbiter import PRUNE_STALE, SessionOwnershipArbiter
from .classify import add_flavor, classify_end, classify_start, truncate
from .classify.patterns import GENERIC_ERROR_PHRASE
from .config import DISCOVERY_INTERVAL_MS, Settings
from .display import DisplayState
from .models import ClassificationResult, DiffInfo, Event, EventKind, now_ms
from .sources import EventSource, SessionFeed, get_feed, get_source
from .states import SemanticState
from .stats import (
    StatsStore,
    StreakStats,
    begin_session,
    end_session,
    expire_milestone,
    record_tool_start,
    update_streak,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


@dataclass
class SessionView:
    """A secondary session as the UI sees it."""

    session_id: str
    label: str
    display: DisplayState
    cwd: str = ""
    model_name: str = ""
    stopped: bool = False
    last_update_at: int = 0


@dataclass
class EngineSnapshot:
    """Everything a renderer needs for one frame."""

    at: int
    primary_session_id: Optional[str]
    primary: DisplayState
    primary_cwd: str = ""
    primary_model_name: str = ""
    sessions: list[SessionView] = field(default_factory=list)
    stats: Optional[StreakStats] = None
    last_diff: Optional[DiffInfo] = None


class ActivityEngine:
    """Single-threaded core: call ``tick`` at the frame rate.

    Events can also be pushed directly with ``handle_event``; both take an
    explicit ``now`` so the whole engine runs on a caller-supplied clock.
    """

    def __init__(
        self,
        sources: Iterable[EventSource] = (),
        feed: Optional[SessionFeed] = None,
        stats: Optional[StreakStats] = None,
        stats_store: Optional[StatsStore] = None,
        flavor_rng: Optional[random.Random] = None,
        discovery_interval_ms: int = DISCOVERY_INTERVAL_MS,
        now: Optional[int] = None,
    ):
        now = now_ms() if now is None else now
        self.sources = list(sources)
        self.feed = feed
        self.stats_store = stats_store
        if stats is None:
            stats = stats_store.load() if stats_store else StreakStats()
        self.stats = stats
        self.flavor_rng = flavor_rng
        self.discovery_interval_ms = discovery_interval_ms
        self.arbiter = SessionOwnershipArbiter(now=now)
        self.last_diff: Optional[DiffInfo] = None
        self._last_discovery_at: Optional[int] = None
        self._stats_dirty = False

    @classmethod
    def from_settings(cls, settings: Settings, from_end: bool = False, **kwargs) -> "ActivityEngine":
        """Engine reading the settings' event spool and session directory."""
        return cls(
            sources=[get_source("jsonl", settings.events_file, from_end=from_end)],
            feed=get_feed("directory", settings.sessions_dir),
            stats_store=StatsStore(settings.stats_file),
            **kwargs,
        )

    # -- Events ------------------------------------------------------------

    def classify(self, event: Event, now: int) -> ClassificationResult:
        """Classify ``event`` and account for it in the stats."""
        kind = event.kind

        if kind is EventKind.TOOL_START:
            record_tool_start(self.stats, event.tool_name, event.tool_input)
            return classify_start(event.tool_name, event.tool_input)

        if kind is EventKind.TOOL_END:
            result = classify_end(
                event.tool_name, event.tool_input, event.tool_output, event.tool_output.is_error
            )
            update_streak(self.stats, result.state is SemanticState.ERROR, now)
            return result

        if kind in (EventKind.TURN_END, EventKind.SESSION_END):
            end_session(self.stats, now)
            return ClassificationResult(SemanticState.HAPPY, "all done!")

        if kind is EventKind.ERROR:
            update_streak(self.stats, True, now)
            return ClassificationResult(SemanticState.ERROR, truncate(event.message or GENERIC_ERROR_PHRASE))

        if kind is EventKind.WAITING:
            return ClassificationResult(SemanticState.WAITING, truncate(event.message or "needs attention"))

        if kind is EventKind.SESSION_START:
            return ClassificationResult(SemanticState.STARTING, "booting up")

        return ClassificationResult(
            event.state or SemanticState.THINKING,
            truncate(event.detail or event.message),
        )

    def handle_event(self, event: Event, now: Optional[int] = None) -> ClassificationResult:
        """Classify one event and hand it to whichever session machine owns it."""
        now = now_ms() if now is None else now
        session_id = event.session_id or DEFAULT_SESSION_ID

        begin_session(self.stats, session_id, now)
        result = self.classify(event, now)
        self._stats_dirty = True
        if self.flavor_rng is not None:
            result = add_flavor(result, self.flavor_rng)

        machine = self.arbiter.route(
            session_id,
            stopped=event.kind in (EventKind.TURN_END, EventKind.SESSION_END),
            session_start=event.kind is EventKind.SESSION_START,
            cwd=event.cwd,
            model_name=event.model_name,
            now=now,
        )
        machine.set_state(result.state, result.detail, now)

        if self.arbiter.is_primary(session_id):
            if result.diff_info is not None:
                self.last_diff = result.diff_info
        else:
            record = self.arbiter.records.get(session_id)
            if record is not None:
                record.last_state = result.state
                record.last_detail = result.detail

        logger.debug(f"{session_id}: {event.kind.value} {event.tool_name} -> {result.state} ({result.detail})")
        return result

    # -- Per-frame work ----------------------------------------------------

    def watch_paths(self) -> list[Path]:
        """Everything the sources and the feed read from."""
        paths = [path for source in self.sources for path in source.watch_paths()]
        if self.feed is not None:
            paths.extend(self.feed.watch_paths())
        return paths

    def notice_change(self, path: Path) -> bool:
        """React to a watched file changing.

        A change under the feed schedules discovery. Returns True when the
        change belongs to an event source, so new events may be waiting.
        """
        path = Path(path).expanduser().resolve()
        if self.feed is not None and _covers(self.feed.watch_paths(), path):
            self.request_discovery()
        return any(_covers(source.watch_paths(), path) for source in self.sources)

    def request_discovery(self):
        """Run the discovery pass on the next tick."""
        self._last_discovery_at = None

    def _discovery_due(self, now: int) -> bool:
        return self._last_discovery_at is None or now - self._last_discovery_at >= self.discovery_interval_ms

    def tick(self, now: Optional[int] = None) -> int:
        """Read new input, reconcile sessions, advance every machine.

        Returns the number of events handled.
        """
        now = now_ms() if now is None else now

        events: list[Event] = []
        for source in self.sources:
            events.extend(source.poll())
        for event in events:
            self.handle_event(event, now)

        if self._discovery_due(now):
            self._last_discovery_at = now
            if self.feed is not None:
                self.arbiter.reconcile(self.feed.discover(self.arbiter.primary_session_id), now)
            for session_id, reason in self.arbiter.sweep(now).items():
                if reason == PRUNE_STALE and self.feed is not None:
                    self.feed.forget(session_id)

        self.arbiter.tick(now)
        if self.stats.recent_milestone is not None and expire_milestone(self.stats, now) is None:
            self._stats_dirty = True
        self.flush_stats()
        return len(events)

    def flush_stats(self):
        if self._stats_dirty and self.stats_store is not None:
            self.stats_store.save(self.stats)
        self._stats_dirty = False

    def close(self):
        self.flush_stats()
        for source in self.sources:
            source.close()

    # -- Views -------------------------------------------------------------

    def snapshot(self, now: Optional[int] = None) -> EngineSnapshot:
        arbiter = self.arbiter
        sessions = []
        for session_id, record in sorted(arbiter.records.items(), key=lambda item: item[1].first_seen_at):
            machine = arbiter.machines.get(session_id)
            if machine is None:
                continue
            sessions.append(
                SessionView(
                    session_id=session_id,
                    label=record.label,
                    display=machine.snapshot(),
                    cwd=record.cwd,
                    model_name=record.model_name,
                    stopped=record.stopped,
                    last_update_at=record.last_update_at,
                )
            )
        return EngineSnapshot(
            at=now_ms() if now is None else now,
            primary_session_id=arbiter.primary_session_id,
            primary=arbiter.primary.snapshot(),
            primary_cwd=arbiter.primary_cwd,
            primary_model_name=arbiter.primary_model_name,
            sessions=sessions,
            stats=self.stats,
            last_diff=self.last_diff,
        )


def _covers(watched: Iterable[Path], path: Path) -> bool:
    for target in watched:
        target = Path(target).expanduser().resolve()
        if path == target or path.parent == target:
            return True
    return False
